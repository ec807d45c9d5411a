"""Limits on the size of a single command line built from input arguments."""

from __future__ import annotations

import copy
import enum
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

# POSIX asks that this much room is left for the child to set its own environment.
_ARG_HEADROOM = 2048
# Longest command line accepted by CreateProcess.
_WINDOWS_MAX_CMDLINE = 32767


class ArgumentKind(enum.Enum):
    """How an argument came to be part of a command line."""

    INITIAL = "initial"
    """Given as part of the initial command line."""
    HARD_TERMINATED = "hard"
    """Ended by a newline or by a custom delimiter."""
    SOFT_TERMINATED = "soft"
    """Ended by whitespace other than a newline."""


@dataclass(frozen=True)
class Argument:
    """A single argument together with the way it was terminated."""

    arg: str
    kind: ArgumentKind


class CommandSpaceExhausted(Exception):
    """Raised when an argument does not fit into the current command line."""

    def __init__(self, arg: Argument, out_of_chars: bool) -> None:
        super().__init__(f"no room for argument {arg.arg!r}")
        self.arg = arg
        self.out_of_chars = out_of_chars


def exec_size(text: str) -> int:
    """Return the space an argument takes up when passed to a new process."""
    if os.name == "nt":
        # UTF-16 code units plus a trailing space or terminator.
        return len(text.encode("utf-16-le")) // 2 + 1
    # Bytes plus the NUL terminator.
    return len(os.fsencode(text)) + 1


def try_limiters(limiters: Sequence["CommandSizeLimiter"], arg: Argument) -> Argument:
    """Offer an argument to each limiter in turn, the first one first."""
    if not limiters:
        return arg
    return limiters[0].try_arg(arg, limiters[1:])


class CommandSizeLimiter(ABC):
    """One constraint on the size of a command line.

    A limiter must pass the argument on to the rest of the limiters before it
    updates its own state, so that its state only changes once every other
    limiter has accepted the argument.
    """

    @abstractmethod
    def try_arg(self, arg: Argument, rest: Sequence["CommandSizeLimiter"]) -> Argument:
        """Accept ``arg`` and return it, or raise :class:`CommandSpaceExhausted`."""


class MaxCharsLimiter(CommandSizeLimiter):
    """Limits the total number of characters on a command line."""

    def __init__(self, max_chars: int) -> None:
        self.max_chars = max_chars
        self.current_size = 0

    @classmethod
    def for_system(cls, env: Mapping[str, str]) -> "MaxCharsLimiter":
        """Build a limiter from the system's limit, less the environment's size."""
        if os.name == "nt" or not hasattr(os, "sysconf"):
            return cls(_WINDOWS_MAX_CMDLINE)
        arg_max = os.sysconf("SC_ARG_MAX")
        env_size = sum(exec_size(name) + exec_size(value) for name, value in env.items())
        return cls(arg_max - _ARG_HEADROOM - env_size)

    def try_arg(self, arg: Argument, rest: Sequence[CommandSizeLimiter]) -> Argument:
        chars = exec_size(arg.arg)
        if self.current_size + chars > self.max_chars:
            raise CommandSpaceExhausted(arg, out_of_chars=True)
        arg = try_limiters(rest, arg)
        self.current_size += chars
        return arg


class MaxArgsLimiter(CommandSizeLimiter):
    """Limits the number of non-initial arguments on a command line."""

    def __init__(self, max_args: int) -> None:
        self.max_args = max_args
        self.current_args = 0

    def try_arg(self, arg: Argument, rest: Sequence[CommandSizeLimiter]) -> Argument:
        if self.current_args >= self.max_args:
            raise CommandSpaceExhausted(arg, out_of_chars=False)
        arg = try_limiters(rest, arg)
        if arg.kind is not ArgumentKind.INITIAL:
            self.current_args += 1
        return arg


class MaxLinesLimiter(CommandSizeLimiter):
    """Limits the number of hard-terminated input lines on a command line.

    With a custom delimiter each delimiter counts as the end of a line.
    """

    def __init__(self, max_lines: int) -> None:
        self.max_lines = max_lines
        self.current_line = 1

    def try_arg(self, arg: Argument, rest: Sequence[CommandSizeLimiter]) -> Argument:
        if self.current_line > self.max_lines:
            raise CommandSpaceExhausted(arg, out_of_chars=False)
        arg = try_limiters(rest, arg)
        if arg.kind is ArgumentKind.HARD_TERMINATED:
            self.current_line += 1
        return arg


class LimiterChain:
    """An ordered set of limiters that must all accept an argument."""

    def __init__(self, limiters: Iterable[CommandSizeLimiter] = ()) -> None:
        self.limiters: list[CommandSizeLimiter] = list(limiters)

    def add(self, limiter: CommandSizeLimiter) -> None:
        """Append a limiter to the end of the chain."""
        self.limiters.append(limiter)

    def try_arg(self, arg: Argument) -> Argument:
        """Offer an argument to every limiter in the chain."""
        return try_limiters(self.limiters, arg)

    def copy(self) -> "LimiterChain":
        """Return a chain whose limiters have independent state."""
        return LimiterChain(copy.copy(limiter) for limiter in self.limiters)