"""Building command lines from input arguments and running them."""

from __future__ import annotations

import enum
import io
import json
import subprocess
import sys
from typing import Iterable, Mapping, Optional, Sequence, TextIO

from .limiters import Argument, ArgumentKind, CommandSpaceExhausted, LimiterChain

_ECHO = "echo"


class CommandResult(enum.Enum):
    """Whether every command run so far succeeded."""

    SUCCESS = "success"
    FAILURE = "failure"

    def combine(self, other: "CommandResult") -> "CommandResult":
        """Return the result of running both commands: a failure sticks."""
        return other if self is CommandResult.SUCCESS else self


class XargsError(Exception):
    """An error that stops xargs; ``exit_code`` is the status to exit with."""

    exit_code = 1


class ArgumentTooLargeError(XargsError):
    """An argument does not fit into any command line."""

    def __init__(self) -> None:
        super().__init__("Argument too large")


class CommandExecutionError(XargsError):
    """Running a command went wrong in a way that stops xargs."""


class UrgentlyFailedError(CommandExecutionError):
    """The command exited with status 255."""

    exit_code = 124

    def __init__(self) -> None:
        super().__init__("Command exited with code 255")


class KilledError(CommandExecutionError):
    """The command was killed by a signal."""

    exit_code = 125

    def __init__(self, signal: int) -> None:
        super().__init__(f"Command was killed with signal {signal}")
        self.signal = signal


class CannotRunError(CommandExecutionError):
    """The command exists but could not be started."""

    exit_code = 126

    def __init__(self, error: OSError) -> None:
        super().__init__(f"Command could not be run: {error}")
        self.error = error


class CommandNotFoundError(CommandExecutionError):
    """The command could not be found."""

    exit_code = 127

    def __init__(self) -> None:
        super().__init__("Command not found")


class UnknownCommandError(CommandExecutionError):
    """The command ended in a way that could not be interpreted."""

    exit_code = 1

    def __init__(self) -> None:
        super().__init__("Unknown error running command")


class CommandBuilderOptions:
    """Everything shared by all the command lines of one xargs run.

    ``command`` is the initial command line, or ``None`` to echo the
    arguments instead. The initial arguments are offered to the limiters
    up front, so each command line starts with their space already used.
    """

    def __init__(
        self,
        command: Optional[Sequence[str]],
        env: Mapping[str, str],
        limiters: LimiterChain,
        replace: Optional[str] = None,
        verbose: bool = False,
        close_stdin: bool = False,
        output: Optional[TextIO] = None,
    ) -> None:
        self.command = list(command) if command else None
        self.env = dict(env)
        self.limiters = limiters.copy()
        self.replace = replace
        self.verbose = verbose
        self.close_stdin = close_stdin
        self.output = output

        initial = self.command if self.command is not None else [_ECHO]
        try:
            for text in initial:
                self.limiters.try_arg(Argument(text, ArgumentKind.INITIAL))
        except CommandSpaceExhausted:
            raise XargsError(
                "Base command and environment are too large to fit into one "
                "command execution"
            ) from None


class CommandBuilder:
    """Collects arguments for one command line and runs it."""

    def __init__(self, options: CommandBuilderOptions) -> None:
        self.options = options
        self.extra_args: list[str] = []
        self.limiters = options.limiters.copy()

    def add_arg(self, arg: Argument) -> None:
        """Add an argument, or raise :class:`CommandSpaceExhausted`."""
        accepted = self.limiters.try_arg(arg)
        self.extra_args.append(accepted.arg)

    def _command_line(self) -> list[str]:
        options = self.options
        if options.command is not None:
            entry_point, initial = options.command[0], options.command[1:]
        else:
            entry_point, initial = _ECHO, []

        if options.replace is not None:
            # Only one extra argument is taken at a time when replacing.
            replacement = self.extra_args[0] if self.extra_args else ""
            return [entry_point] + [
                text.replace(options.replace, replacement) for text in initial
            ]
        return [entry_point, *initial, *self.extra_args]

    def _output(self) -> TextIO:
        return self.options.output if self.options.output is not None else sys.stdout

    def execute(self) -> CommandResult:
        """Run the command line, or echo the arguments when there is no command."""
        argv = self._command_line()
        if self.options.verbose:
            print(
                " ".join(json.dumps(part, ensure_ascii=False) for part in argv),
                file=sys.stderr,
            )

        output = self._output()
        if self.options.command is None:
            output.write(" ".join(self.extra_args) + "\n")
            return CommandResult.SUCCESS

        return self._run(argv, output)

    def _run(self, argv: list[str], output: TextIO) -> CommandResult:
        stdin = subprocess.DEVNULL if self.options.close_stdin else None
        try:
            output.fileno()
        except (AttributeError, OSError, ValueError, io.UnsupportedOperation):
            capture = True
        else:
            capture = False
            output.flush()

        try:
            completed = subprocess.run(
                argv,
                env=self.options.env,
                stdin=stdin,
                stdout=subprocess.PIPE if capture else output,
                text=capture,
                check=False,
            )
        except FileNotFoundError:
            raise CommandNotFoundError() from None
        except OSError as error:
            raise CannotRunError(error) from None

        if capture and completed.stdout:
            output.write(completed.stdout)

        code = completed.returncode
        if code == 0:
            return CommandResult.SUCCESS
        if code == 255:
            raise UrgentlyFailedError()
        if code > 0:
            return CommandResult.FAILURE
        if code < 0:
            raise KilledError(-code)
        raise UnknownCommandError()


def process_input(
    options: CommandBuilderOptions,
    args: Iterable[Argument],
    exit_if_pass_char_limit: bool = False,
    max_args: Optional[int] = None,
    max_lines: Optional[int] = None,
    no_run_if_empty: bool = False,
) -> CommandResult:
    """Pack the arguments into command lines and run each one in turn."""
    builder = CommandBuilder(options)
    have_pending_command = False
    result = CommandResult.SUCCESS

    for arg in args:
        try:
            builder.add_arg(arg)
        except CommandSpaceExhausted as exhausted:
            if (
                exhausted.out_of_chars
                and exit_if_pass_char_limit
                and (max_args is not None or max_lines is not None)
            ):
                raise ArgumentTooLargeError() from None
            if have_pending_command:
                result = result.combine(builder.execute())

            builder = CommandBuilder(options)
            try:
                builder.add_arg(exhausted.arg)
            except CommandSpaceExhausted:
                raise ArgumentTooLargeError() from None

        have_pending_command = True

    if not no_run_if_empty or have_pending_command:
        result = result.combine(builder.execute())

    return result