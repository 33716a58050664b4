from __future__ import annotations

import logging
from enum import IntEnum
from typing import TYPE_CHECKING, cast

from .exceptions import UnexpectedEndError
from .headers import Headers, read_header

if TYPE_CHECKING:  # pragma: no cover
    from typing import Protocol

    class SupportsRead(Protocol):
        def read(self, __n: int) -> bytes: ...


# Get logger for this module.
logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1048576

CRLF = b"\r\n"
LF = b"\n"
TRANSPORT_PADDING = b" \t"


class Delimiter(IntEnum):
    """What kind of boundary delimiter a line is."""

    NONE = 0
    PART = 1
    CLOSE = 2


def _split_line_ending(line: bytes) -> tuple[bytes, bytes]:
    if line.endswith(CRLF):
        return line[:-2], CRLF
    if line.endswith(LF):
        return line[:-1], LF
    return line, b""


class StreamReader:
    """
    A buffered reader over any object with a ``read(n)`` method, adding the
    ``readline()`` the header reader and the boundary splitter need.  The
    underlying stream is only ever read forward, ``chunk_size`` bytes at a
    time.
    """

    def __init__(self, stream: SupportsRead, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        if not isinstance(chunk_size, int) or chunk_size < 1:
            raise ValueError(f"chunk_size must be a positive integer, not {chunk_size!r}")
        self.stream = stream
        self.chunk_size = chunk_size
        self._buffer = bytearray()
        self._eof = False

    def _fill(self) -> bool:
        if self._eof:
            return False
        data = self.stream.read(self.chunk_size)
        if not data:
            self._eof = True
            return False
        self._buffer += data
        return True

    def _take(self, n: int) -> bytes:
        data = bytes(self._buffer[:n])
        del self._buffer[:n]
        return data

    def readline(self) -> bytes:
        """Returns the next line including its line ending, the unterminated
        tail of the stream, or ``b""`` at the end of the stream.
        """
        start = 0
        while True:
            i = self._buffer.find(LF, start)
            if i >= 0:
                return self._take(i + 1)
            start = len(self._buffer)
            if not self._fill():
                return self._take(len(self._buffer))

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            while self._fill():
                pass
            return self._take(len(self._buffer))

        while len(self._buffer) < size and self._fill():
            pass
        return self._take(min(size, len(self._buffer)))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(stream={self.stream!r})"


class PartReader:
    """
    Reads the body of the current part of a :class:`BoundarySplitter`.  The
    body ends at the next delimiter line; the line break in front of the
    delimiter belongs to the delimiter, not to the body.

    If the stream ends before a delimiter shows up, reading raises
    :class:`UnexpectedEndError`.
    """

    def __init__(self, splitter: BoundarySplitter) -> None:
        self.splitter = splitter
        self._buffer = bytearray()
        self._pending = b""

        #: The delimiter that ended this part, or None while it is open.
        self.delimiter: Delimiter | None = None

    def _read_line(self) -> bool:
        if self.delimiter is not None:
            return False

        line = self.splitter.reader.readline()
        if not line:
            raise UnexpectedEndError(
                f"Unexpected end of stream in part at boundary {self.splitter.boundary!r}",
                self.splitter.boundary,
            )

        kind = self.splitter.match(line)
        if kind is not Delimiter.NONE:
            self.delimiter = kind
            self._pending = b""
            return False

        content, ending = _split_line_ending(line)
        self._buffer += self._pending
        self._buffer += content
        self._pending = ending
        return True

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            while self._read_line():
                pass
            size = len(self._buffer)
        else:
            while len(self._buffer) < size and self._read_line():
                pass

        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data

    def drain(self) -> Delimiter:
        """Discards whatever is left of this part and returns the delimiter
        that ended it.
        """
        del self._buffer[:]
        while self._read_line():
            del self._buffer[:]
        # _read_line only returns False once a delimiter has been seen.
        return cast(Delimiter, self.delimiter)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(boundary={self.splitter.boundary!r}, delimiter={self.delimiter!r})"


class BoundarySplitter:
    """
    Splits one boundary-delimited region into its parts.  This is an
    iterator: each step yields the ``(headers, part_reader)`` pair of the
    next part, and iteration stops at the close delimiter.  Lines before the
    first delimiter (the preamble) and after the close delimiter (the
    epilogue) are ignored.

    Advancing the iterator discards the unread rest of the previous part.  An
    empty header block yields an empty :class:`Headers`; it usually means the
    final delimiter was written without its trailing ``--``.
    """

    def __init__(self, stream: SupportsRead, boundary: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self.logger = logging.getLogger(__name__)
        self.boundary = boundary
        if isinstance(stream, StreamReader):
            self.reader = stream
        else:
            self.reader = StreamReader(stream, chunk_size)

        self._dash_boundary = b"--" + boundary.encode("utf-8")
        self._part: PartReader | None = None
        self._done = False
        self.parts_read = 0

    def match(self, line: bytes) -> Delimiter:
        """Tells whether ``line`` is a delimiter of this region, allowing
        transport padding before the line ending.
        """
        if not line.startswith(self._dash_boundary):
            return Delimiter.NONE
        rest = _split_line_ending(line[len(self._dash_boundary) :])[0]
        if rest.startswith(b"--") and not rest[2:].strip(TRANSPORT_PADDING):
            return Delimiter.CLOSE
        if not rest.strip(TRANSPORT_PADDING):
            return Delimiter.PART
        return Delimiter.NONE

    def _skip_preamble(self) -> Delimiter:
        skipped = 0
        while True:
            line = self.reader.readline()
            if not line:
                raise UnexpectedEndError(f"No delimiter found for boundary {self.boundary!r}", self.boundary)
            kind = self.match(line)
            if kind is not Delimiter.NONE:
                if skipped:
                    self.logger.debug("Skipped %d preamble lines before boundary %r", skipped, self.boundary)
                return kind
            skipped += 1

    def __iter__(self) -> BoundarySplitter:
        return self

    def __next__(self) -> tuple[Headers, PartReader]:
        if self._done:
            raise StopIteration

        if self._part is None:
            kind = self._skip_preamble()
        else:
            kind = self._part.drain()

        if kind is Delimiter.CLOSE:
            self.logger.debug("Reached close delimiter of boundary %r after %d parts", self.boundary, self.parts_read)
            self._done = True
            raise StopIteration

        headers = read_header(self.reader)
        self._part = PartReader(self)
        self.parts_read += 1
        return headers, self._part

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(boundary={self.boundary!r}, parts_read={self.parts_read})"
