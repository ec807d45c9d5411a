[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "xargskit"
version = "0.8.0"
description = "Build and run command lines from arguments read on standard input"
requires-python = ">=3.10"
dependencies = []
keywords = ["xargs", "command-line", "shell", "batch", "arguments"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Shells",
    "Topic :: Utilities",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
xargskit = "xargskit.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["xargskit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
