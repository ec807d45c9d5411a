"""Read arguments from a stream and run commands with them in batches."""

__version__ = "0.8.0"
__all__ = ["__version__"]