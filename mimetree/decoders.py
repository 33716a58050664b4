from __future__ import annotations

import base64
import binascii
import codecs
from typing import TYPE_CHECKING

from .exceptions import DecodeError

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Callable
    from typing import Protocol

    class SupportsRead(Protocol):
        def read(self, __n: int = ...) -> bytes: ...


DEFAULT_CHUNK_SIZE = 8192

# fmt: off
BASE64_CHARS = (
    b"ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    b"abcdefghijklmnopqrstuvwxyz"
    b"0123456789+/="
)
# fmt: on
NON_BASE64_CHARS = bytes(c for c in range(256) if c not in BASE64_CHARS)


class DecodingReader:
    """
    Base class for the pull-based decoders.  Each one wraps an
    ``underlying`` reader, pulls ``chunk_size`` bytes from it at a time and
    passes them through :meth:`decode`; at the end of the underlying stream
    :meth:`finalize` flushes whatever the decoder still holds.

    Decoders are lazy: any :class:`DecodeError` is raised from :meth:`read`.
    """

    def __init__(self, underlying: SupportsRead, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self.underlying = underlying
        self.chunk_size = chunk_size
        self._buffer = bytearray()
        self._eof = False

    def decode(self, data: bytes) -> bytes:
        raise NotImplementedError  # pragma: no cover

    def finalize(self) -> bytes:
        return b""

    def read(self, size: int = -1) -> bytes:
        if size is None:
            size = -1
        while (size < 0 or len(self._buffer) < size) and not self._eof:
            data = self.underlying.read(self.chunk_size)
            if data:
                self._buffer += self.decode(data)
            else:
                self._eof = True
                self._buffer += self.finalize()

        if size < 0:
            size = len(self._buffer)
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(underlying={self.underlying!r})"


class Base64Cleaner:
    """Drops every byte outside the base64 alphabet (line breaks and other
    whitespace inserted by line wrapping) from the underlying reader.
    """

    def __init__(self, underlying: SupportsRead) -> None:
        self.underlying = underlying

    def read(self, size: int = -1) -> bytes:
        while True:
            data = self.underlying.read(size)
            if not data:
                return b""
            cleaned = data.translate(None, NON_BASE64_CHARS)
            # Only return an empty result at the end of the stream.
            if cleaned or size is None or size < 0:
                return cleaned

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(underlying={self.underlying!r})"


class Base64Decoder(DecodingReader):
    def __init__(self, underlying: SupportsRead, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        super().__init__(underlying, chunk_size)
        self.cache = b""

    def decode(self, data: bytes) -> bytes:
        # Prepend any cache info to our data.
        if len(self.cache) > 0:
            data = self.cache + data

        # Slice off a string that's a multiple of 4.
        decode_len = (len(data) // 4) * 4
        val = data[:decode_len]

        # Get the remaining bytes and save in our cache.
        self.cache = data[decode_len:]

        if len(val) == 0:
            return b""
        try:
            return base64.b64decode(val)
        except binascii.Error as err:
            raise DecodeError("There was an error raised while decoding base64-encoded data.") from err

    def finalize(self) -> bytes:
        if len(self.cache) > 0:
            raise DecodeError(
                f"There are {len(self.cache)} bytes remaining in the Base64Decoder cache at the end of the stream"
            )
        return b""


class QuotedPrintableDecoder(DecodingReader):
    def __init__(self, underlying: SupportsRead, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        super().__init__(underlying, chunk_size)
        self.cache = b""

    def decode(self, data: bytes) -> bytes:
        # Prepend any cache info to our data.
        if len(self.cache) > 0:
            data = self.cache + data

        # The longest possible escape is 3 characters long, either in the
        # form '=XX' or '=\r\n'.  If an '=' sits in the last 2 characters,
        # the escape is cut off and must wait for the next chunk.
        split = data.rfind(b"=", max(len(data) - 2, 0))
        if split == -1:
            enc, rest = data, b""
        else:
            enc, rest = data[:split], data[split:]

        # Save remaining in cache.
        self.cache = rest
        if len(enc) == 0:
            return b""
        return binascii.a2b_qp(enc)

    def finalize(self) -> bytes:
        # If we have a cache, decode and then remove it.
        if len(self.cache) > 0:
            data = binascii.a2b_qp(self.cache)
            self.cache = b""
            return data
        return b""


def for_charset(label: str, errors: str = "strict") -> Callable[..., codecs.IncrementalDecoder]:
    """Returns the incremental decoder factory for a charset label.  Raises
    :class:`LookupError` right away if the label is unknown, names a codec
    that does not produce text (such as ``base64``), or names a codec that
    cannot be used with the ``errors`` handler.
    """
    factory = codecs.getincrementaldecoder(label.strip().strip('"'))
    try:
        probe = factory(errors).decode(b"", final=True)
    except (TypeError, ValueError) as err:
        # UnicodeError is a ValueError.  Codecs such as "undefined" or "idna"
        # with a lenient handler fail even on empty input.
        raise LookupError(f"{label!r} cannot be used as a charset: {err}") from err
    if not isinstance(probe, str):
        raise LookupError(f"{label!r} is not a text encoding")
    return factory


class CharsetDecoder(DecodingReader):
    """Converts the underlying reader's content from ``charset`` to UTF-8.

    Unknown labels raise :class:`LookupError` from the constructor.  With
    ``errors="strict"``, undecodable bytes raise :class:`DecodeError` while
    reading.
    """

    def __init__(
        self,
        underlying: SupportsRead,
        charset: str,
        errors: str = "replace",
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        factory = for_charset(charset, errors)
        super().__init__(underlying, chunk_size)
        self.charset = charset
        self.errors = errors
        self._decoder = factory(errors)

    def decode(self, data: bytes, final: bool = False) -> bytes:
        try:
            return self._decoder.decode(data, final).encode("utf-8")
        except UnicodeError as err:
            raise DecodeError(f"Could not decode {self.charset!r} content: {err}") from err

    def finalize(self) -> bytes:
        return self.decode(b"", final=True)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(underlying={self.underlying!r}, charset={self.charset!r})"
