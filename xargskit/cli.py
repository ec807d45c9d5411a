"""Command-line front end: option parsing and the main xargs run."""

from __future__ import annotations

import argparse
import contextlib
import os
import sys
from dataclasses import dataclass, field
from typing import BinaryIO, Iterator, Optional, Sequence, TextIO

from .command import CommandBuilderOptions, CommandResult, XargsError, process_input
from .limiters import LimiterChain, MaxArgsLimiter, MaxCharsLimiter, MaxLinesLimiter
from .readers import DelimitedArgumentReader, UnterminatedQuoteError, WhitespaceArgumentReader

_VERSION = "0.8.0"
_FAILURE_EXIT_CODE = 123
_DIGITS = "0123456789abcdef"
_USIZE_MAX = 2**64 - 1
_ABSENT = (-1, -1)

_SHORT_VALUED = {
    "a": "arg_file",
    "d": "delimiter",
    "n": "max_args",
    "L": "max_lines",
    "P": "max_procs",
    "s": "max_chars",
    "I": "replace_i",
}
_SHORT_FLAGS = {
    "x": "exit_if_pass_char_limit",
    "r": "no_run_if_empty",
    "0": "null",
    "t": "verbose",
    "h": "show_help",
    "V": "show_version",
    "i": "replace",
}
_LONG_VALUED = {
    "arg-file": "arg_file",
    "delimiter": "delimiter",
    "max-args": "max_args",
    "max-lines": "max_lines",
    "max-procs": "max_procs",
    "max-chars": "max_chars",
}
_LONG_FLAGS = {
    "exit": "exit_if_pass_char_limit",
    "no-run-if-empty": "no_run_if_empty",
    "null": "null",
    "verbose": "verbose",
    "help": "show_help",
    "version": "show_version",
    "replace": "replace",
}

_WARNING = (
    "WARNING: -L, -n and -I/-i are mutually exclusive, but more than one were given; "
    "only the last option will be used"
)


@dataclass
class XargsOptions:
    """The options given on the command line, before they are reconciled."""

    command: list[str] = field(default_factory=list)
    arg_file: Optional[str] = None
    delimiter: Optional[int] = None
    exit_if_pass_char_limit: bool = False
    max_args: Optional[int] = None
    max_chars: Optional[int] = None
    max_lines: Optional[int] = None
    max_procs: Optional[int] = None
    no_run_if_empty: bool = False
    null: bool = False
    replace: Optional[str] = None
    verbose: bool = False
    show_help: bool = False
    show_version: bool = False
    positions: dict[str, tuple[int, int]] = field(default_factory=dict)
    """Where each option last appeared, for resolving conflicts by order."""

    def position(self, name: str) -> tuple[int, int]:
        return self.positions.get(name, _ABSENT)


def _parse_unsigned(text: str, radix: int, limit: int = _USIZE_MAX) -> int:
    if not text:
        raise ValueError("cannot parse integer from empty string")
    digits = text[1:] if text.startswith("+") else text
    allowed = _DIGITS[:radix]
    if not digits or any(char.lower() not in allowed for char in digits):
        raise ValueError("invalid digit found in string")
    value = int(digits, radix)
    if value > limit:
        raise ValueError("number too large to fit in target type")
    return value


def parse_delimiter(text: str) -> int:
    """Parse a delimiter given as one byte or as a backslash escape."""
    if text.startswith("\\"):
        rest = text[1:]
        if rest.startswith("x"):
            try:
                return _parse_unsigned(rest[1:], 16, 0xFF)
            except ValueError as error:
                raise ValueError(f"Invalid hex sequence: {error}") from None
        if rest.startswith("0"):
            try:
                return _parse_unsigned(rest[1:], 8, 0xFF)
            except ValueError as error:
                raise ValueError(f"Invalid octal sequence: {error}") from None
        specials = {
            "a": 0x07,
            "b": 0x08,
            "f": 0x0C,
            "n": 0x0A,
            "r": 0x0D,
            "t": 0x09,
            "v": 0x0B,
            "\\": 0x5C,
            "0": 0x00,
        }
        if rest in specials:
            return specials[rest]
        raise ValueError(f"Invalid escape sequence: \\{rest}")
    encoded = text.encode("utf-8", errors="surrogateescape")
    if len(encoded) == 1:
        return encoded[0]
    raise ValueError("Delimiter must be one byte")


def positive_int(text: str) -> int:
    """Parse a whole number greater than zero."""
    value = _parse_unsigned(text, 10)
    if value == 0:
        raise ValueError(f"Value must be > 0, not: {value}")
    return value


def _argument_type(parse):
    def convert(text: str):
        try:
            return parse(text)
        except ValueError as error:
            raise argparse.ArgumentTypeError(f"invalid value '{text}': {error}") from None

    convert.__name__ = parse.__name__
    return convert


class _Parser(argparse.ArgumentParser):
    def error(self, message: str):
        raise XargsError(message)


def build_parser() -> argparse.ArgumentParser:
    """Build the parser for the options that precede the command."""
    parser = _Parser(
        prog="xargs",
        usage="xargs [OPTIONS] [COMMAND]...",
        description="Run commands using arguments derived from standard input",
        add_help=False,
        allow_abbrev=False,
    )
    parser.add_argument("-h", "--help", dest="show_help", action="store_true",
                        help="Print help")
    parser.add_argument("-V", "--version", dest="show_version", action="store_true",
                        help="Print version")
    parser.add_argument("-a", "--arg-file", dest="arg_file",
                        help="Read arguments from the given file instead of stdin")
    parser.add_argument("-d", "--delimiter", dest="delimiter",
                        type=_argument_type(parse_delimiter),
                        help="Use the given delimiter to split the input")
    parser.add_argument("-x", "--exit", dest="exit_if_pass_char_limit", action="store_true",
                        help="Exit if the number of arguments allowed by -L or -n do not "
                             "fit into the number of allowed characters")
    parser.add_argument("-n", "--max-args", dest="max_args",
                        type=_argument_type(positive_int),
                        help="Set the max number of arguments read from stdin to be passed "
                             "to each command invocation (mutually exclusive with -L and -I/-i)")
    parser.add_argument("-L", "--max-lines", dest="max_lines",
                        type=_argument_type(positive_int),
                        help="Set the max number of lines from stdin to be passed to each "
                             "command invocation (mutually exclusive with -n and -I/-i)")
    parser.add_argument("-P", "--max-procs", dest="max_procs",
                        type=_argument_type(lambda text: _parse_unsigned(text, 10)),
                        help="Run up to this many commands in parallel [NOT IMPLEMENTED]")
    parser.add_argument("-r", "--no-run-if-empty", dest="no_run_if_empty", action="store_true",
                        help="If there are no input arguments, do not run the command at all")
    parser.add_argument("-0", "--null", dest="null", action="store_true",
                        help="Split the input by null terminators rather than whitespace")
    parser.add_argument("-s", "--max-chars", dest="max_chars",
                        type=_argument_type(positive_int),
                        help="Set the max number of characters to be passed to each invocation")
    parser.add_argument("-t", "--verbose", dest="verbose", action="store_true",
                        help="Be verbose")
    parser.add_argument("-i", "--replace", dest="replace", nargs="?", const="{}",
                        metavar="R",
                        help="If R is specified, the same as -I R; otherwise, the same as -I {}")
    parser.add_argument("-I", dest="replace_i", metavar="R",
                        help="Replace R in initial arguments with names read from standard "
                             "input; also, the input is split at newlines only "
                             "(mutually exclusive with -L and -n)")
    return parser


def _split_command(
    argv: Sequence[str],
) -> tuple[list[str], list[str], dict[str, tuple[int, int]]]:
    """Separate the options from the command and note where each option appeared."""
    tokens = list(argv)
    options: list[str] = []
    positions: dict[str, tuple[int, int]] = {}
    index = 0
    while index < len(tokens):
        token = tokens[index]
        if token == "--":
            return options, tokens[index + 1:], positions
        if token.startswith("--"):
            name, equals, _ = token[2:].partition("=")
            dest = _LONG_VALUED.get(name) or _LONG_FLAGS.get(name)
            if dest is not None:
                positions[dest] = (index, 0)
            options.append(token)
            if name in _LONG_VALUED and not equals and index + 1 < len(tokens):
                index += 1
                options.append(tokens[index])
            index += 1
            continue
        if token.startswith("-") and len(token) > 1:
            options.append(token)
            for offset, char in enumerate(token[1:], start=1):
                if char in _SHORT_VALUED:
                    positions[_SHORT_VALUED[char]] = (index, offset)
                    if offset == len(token) - 1 and index + 1 < len(tokens):
                        index += 1
                        options.append(tokens[index])
                    break
                dest = _SHORT_FLAGS.get(char)
                if dest is not None:
                    positions[dest] = (index, offset)
                if char == "i":
                    break
            index += 1
            continue
        return options, tokens[index:], positions
    return options, [], positions


def parse_options(argv: Sequence[str]) -> XargsOptions:
    """Parse the command line; raises :class:`XargsError` on bad input."""
    option_args, command, positions = _split_command(argv)
    namespace = build_parser().parse_args(option_args)

    given = [
        (positions.get(dest, _ABSENT), getattr(namespace, dest))
        for dest in ("replace", "replace_i")
        if getattr(namespace, dest) is not None
    ]
    replace = max(given)[1] if given else None

    return XargsOptions(
        command=command,
        arg_file=namespace.arg_file,
        delimiter=namespace.delimiter,
        exit_if_pass_char_limit=namespace.exit_if_pass_char_limit,
        max_args=namespace.max_args,
        max_chars=namespace.max_chars,
        max_lines=namespace.max_lines,
        max_procs=namespace.max_procs,
        no_run_if_empty=namespace.no_run_if_empty,
        null=namespace.null,
        replace=replace,
        verbose=namespace.verbose,
        show_help=namespace.show_help,
        show_version=namespace.show_version,
        positions=positions,
    )


def normalize_options(
    options: XargsOptions,
) -> tuple[Optional[int], Optional[int], Optional[str], Optional[int]]:
    """Reconcile -n, -L and -I/-i, and -d with -0.

    Returns ``(max_args, max_lines, replace, delimiter)``.
    """
    max_args, max_lines, replace = options.max_args, options.max_lines, options.replace

    if replace is not None and max_lines is None and max_args in (None, 1):
        max_args, max_lines = 1, None
    elif replace is None and (max_args is None or max_lines is None):
        pass
    else:
        print(_WARNING, file=sys.stderr)
        lines_index = options.position("max_lines") if max_lines is not None else _ABSENT
        args_index = options.position("max_args") if max_args is not None else _ABSENT
        replace_index = (
            max(options.position("replace"), options.position("replace_i"))
            if replace is not None
            else _ABSENT
        )
        if lines_index > args_index and lines_index > replace_index:
            max_args, replace = None, None
        elif args_index > lines_index and args_index > replace_index:
            max_lines, replace = None, None
        else:
            max_args, max_lines = 1, None

    if options.delimiter is not None and options.null:
        if options.position("null") > options.position("delimiter"):
            delimiter: Optional[int] = 0
        else:
            delimiter = options.delimiter
    elif options.delimiter is not None:
        delimiter = options.delimiter
    elif options.null:
        delimiter = 0
    else:
        # With replacement each input line becomes one command line.
        delimiter = ord("\n") if replace is not None else None

    return max_args, max_lines, replace, delimiter


@contextlib.contextmanager
def _open_input(path: Optional[str], stdin: Optional[BinaryIO]) -> Iterator[BinaryIO]:
    if path is None:
        stream = sys.stdin if stdin is None else stdin
        yield getattr(stream, "buffer", stream)
        return
    try:
        handle = open(path, "rb")
    except OSError as error:
        raise XargsError(f"Failed to open {path}: {error.strerror or error}") from None
    with handle:
        yield handle


def _xargs(argv: list[str], stdin: Optional[BinaryIO], output: TextIO) -> int:
    options = parse_options(argv)
    if options.show_help:
        output.write(build_parser().format_help())
        return 0
    if options.show_version:
        output.write(f"xargs {_VERSION}\n")
        return 0

    max_args, max_lines, replace, delimiter = normalize_options(options)
    env = dict(os.environ)

    limiters = LimiterChain()
    if max_args is not None:
        limiters.add(MaxArgsLimiter(max_args))
    if max_lines is not None:
        limiters.add(MaxLinesLimiter(max_lines))
    if options.max_chars is not None:
        limiters.add(MaxCharsLimiter(options.max_chars))
    limiters.add(MaxCharsLimiter.for_system(env))

    builder_options = CommandBuilderOptions(
        options.command or None,
        env,
        limiters,
        replace=replace,
        verbose=options.verbose,
        close_stdin=options.arg_file is None,
        output=output,
    )

    with _open_input(options.arg_file, stdin) as stream:
        if delimiter is not None:
            reader = DelimitedArgumentReader(stream, delimiter)
        else:
            reader = WhitespaceArgumentReader(stream)
        result = process_input(
            builder_options,
            reader,
            exit_if_pass_char_limit=options.exit_if_pass_char_limit,
            max_args=max_args,
            max_lines=max_lines,
            no_run_if_empty=options.no_run_if_empty,
        )

    return 0 if result is CommandResult.SUCCESS else _FAILURE_EXIT_CODE


def run(
    argv: Optional[Sequence[str]] = None,
    stdin: Optional[BinaryIO] = None,
    stdout: Optional[TextIO] = None,
) -> int:
    """Run xargs with the given arguments and return the exit status."""
    args = sys.argv[1:] if argv is None else list(argv)
    output = sys.stdout if stdout is None else stdout
    try:
        return _xargs(args, stdin, output)
    except XargsError as error:
        print(f"Error: {error}", file=sys.stderr)
        return error.exit_code
    except (UnterminatedQuoteError, OSError) as error:
        print(f"Error: {error}", file=sys.stderr)
        return 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the ``xargs`` command."""
    return run(argv)


if __name__ == "__main__":
    sys.exit(main())