"""Readers that split an input stream into command arguments."""

from __future__ import annotations

from typing import BinaryIO, Iterator, Optional

from .limiters import Argument, ArgumentKind

_CHUNK_SIZE = 4096
_WHITESPACE = frozenset(b" \t\n\x0c\r")
_QUOTES = frozenset(b"\"'")
_BACKSLASH = ord("\\")
_NEWLINE = ord("\n")


class UnterminatedQuoteError(ValueError):
    """Raised when the input ends inside a quoted argument."""

    def __init__(self, quote: int) -> None:
        super().__init__(f"Unterminated quote: {quote}")
        self.quote = quote


class _ChunkedInput:
    """Byte source over a readable stream, retrying interrupted reads."""

    def __init__(self, stream: BinaryIO) -> None:
        self._read = getattr(stream, "read1", stream.read)
        self.buffer = b""
        self.pos = 0
        self.eof = False

    def fill(self) -> bool:
        """Replace the exhausted buffer with fresh data; False at end of input."""
        if self.eof:
            return False
        while True:
            try:
                data = self._read(_CHUNK_SIZE)
            except InterruptedError:
                continue
            break
        if not data:
            self.eof = True
            return False
        self.buffer = bytes(data)
        self.pos = 0
        return True

    def next_byte(self) -> Optional[int]:
        if self.pos == len(self.buffer) and not self.fill():
            return None
        byte = self.buffer[self.pos]
        self.pos += 1
        return byte


class WhitespaceArgumentReader:
    """Splits input at whitespace, honouring quotes and backslash escapes.

    An argument ended by a newline is hard-terminated; one ended by any other
    whitespace or by the end of input is soft-terminated.
    """

    def __init__(self, stream: BinaryIO) -> None:
        self._input = _ChunkedInput(stream)

    def __iter__(self) -> Iterator[Argument]:
        return self

    def __next__(self) -> Argument:
        result = bytearray()
        quote: Optional[int] = None
        escaped = False
        consumed_any = False
        terminated_by_newline = False

        while True:
            byte = self._input.next_byte()
            if byte is None:
                if quote is not None:
                    raise UnterminatedQuoteError(quote)
                if not consumed_any:
                    raise StopIteration
                break
            consumed_any = True

            if quote is not None:
                if byte == quote:
                    quote = None
                else:
                    result.append(byte)
            elif escaped:
                result.append(byte)
                escaped = False
            elif byte in _QUOTES:
                quote = byte
            elif byte == _BACKSLASH:
                escaped = True
            elif byte in _WHITESPACE:
                if result:
                    terminated_by_newline = byte == _NEWLINE
                    break
            else:
                result.append(byte)

        kind = (
            ArgumentKind.HARD_TERMINATED
            if terminated_by_newline
            else ArgumentKind.SOFT_TERMINATED
        )
        return Argument(result.decode("utf-8", errors="replace"), kind)


class DelimitedArgumentReader:
    """Splits input at a single delimiter byte, skipping empty arguments."""

    def __init__(self, stream: BinaryIO, delimiter: int) -> None:
        self._input = _ChunkedInput(stream)
        self.delimiter = delimiter

    def __iter__(self) -> Iterator[Argument]:
        return self

    def _next_piece(self) -> Optional[bytes]:
        """Return the bytes up to the next delimiter, or what remains at the end."""
        source = self._input
        collected = bytearray()
        while True:
            if source.pos == len(source.buffer) and not source.fill():
                return bytes(collected) if collected else None
            end = source.buffer.find(self.delimiter, source.pos)
            if end >= 0:
                collected += source.buffer[source.pos:end]
                source.pos = end + 1
                return bytes(collected)
            collected += source.buffer[source.pos:]
            source.pos = len(source.buffer)

    def __next__(self) -> Argument:
        while True:
            piece = self._next_piece()
            if piece is None:
                raise StopIteration
            if piece:
                return Argument(
                    piece.decode("utf-8", errors="replace"),
                    ArgumentKind.HARD_TERMINATED,
                )