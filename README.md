# xargskit

`xargskit` reads arguments from standard input (or from a file) and runs a
command with them. It puts as many arguments into each command line as the
configured limits allow. If no command is given, it prints the arguments,
separated by spaces, one command line's worth per output line.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Command line

```
echo "a b c d" | xargskit -n2 echo
```

prints

```
a b
c d
```

Options:

| Option | Meaning |
| --- | --- |
| `-a FILE`, `--arg-file FILE` | Read arguments from FILE instead of stdin |
| `-d DELIM`, `--delimiter DELIM` | Split input on one byte: a single character, or an escape such as `\n`, `\t`, `\\`, `\x41` or `\0101` |
| `-0`, `--null` | Split input on NUL bytes |
| `-n N`, `--max-args N` | At most N input arguments per command |
| `-L N`, `--max-lines N` | At most N input lines per command |
| `-s N`, `--max-chars N` | At most N characters per command line, counting one terminator per argument |
| `-x`, `--exit` | Stop with an error if an argument allowed by `-n` or `-L` does not fit within the character limit |
| `-r`, `--no-run-if-empty` | Do not run the command when there is no input |
| `-t`, `--verbose` | Print each command line to stderr before running it |
| `-I R` | Replace R in the initial arguments with each input line |
| `-i[=R]`, `--replace[=R]` | Same as `-I R`, with `{}` when R is left out |
| `-P N`, `--max-procs N` | Accepted; commands still run one at a time |
| `-h`, `--help` | Print help |
| `-V`, `--version` | Print the version |

Without `-d` or `-0`, input is split at whitespace; single and double quotes
group words into one argument, and a backslash escapes the next character.
Input that ends inside a quote is an error.

`-n`, `-L` and `-I`/`-i` exclude each other. When more than one is given, a
warning is printed and the one that appears last on the command line wins.
When both `-d` and `-0` are given, the later one wins. With `-I`/`-i` the
input is split at newlines unless a delimiter is given, and each input
argument gets a command line of its own.

When no argument file is given, the commands are run with standard input
closed. The environment is passed on to each command unchanged, and its size
counts against the system's limit on command line length.

Exit status: `0` on success, `123` if any command failed, `124` if a command
exited with status 255, `125` if it was killed by a signal, `126` if it could
not be run, `127` if it was not found, and `1` for other errors.

## Library use

```python
import io
from xargskit.cli import run

out = io.StringIO()
status = run(["-n2"], stdin=io.BytesIO(b"a b c"), stdout=out)
assert status == 0
assert out.getvalue() == "a b\nc\n"
```

The building blocks can also be used directly:

- `xargskit.readers`: `WhitespaceArgumentReader` and `DelimitedArgumentReader`
  iterate over a binary stream and yield `Argument` values;
  `UnterminatedQuoteError` is raised for an unclosed quote.
- `xargskit.limiters`: `Argument`, `ArgumentKind`, `MaxArgsLimiter`,
  `MaxLinesLimiter`, `MaxCharsLimiter` (with `MaxCharsLimiter.for_system`),
  `LimiterChain`, and `CommandSpaceExhausted`, raised when an argument does
  not fit.
- `xargskit.command`: `CommandBuilderOptions`, `CommandBuilder`,
  `process_input`, `CommandResult`, and the `XargsError` family of
  exceptions, each carrying the `exit_code` listed above.
- `xargskit.cli`: `parse_options`, `normalize_options`, `parse_delimiter`,
  `positive_int`, `build_parser`, `run` and `main`.

## Limitations

Commands always run one after another; `-P` is parsed but has no effect.
There is no support for an end-of-file marker string or for prompting
before each command.