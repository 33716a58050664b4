from __future__ import annotations

import email.errors
import email.header
import email.utils
import logging
from typing import TYPE_CHECKING
from urllib.parse import unquote_to_bytes

from .exceptions import HeaderParseError, MediaTypeError

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Iterable, Iterator
    from typing import Protocol

    class SupportsReadline(Protocol):
        def readline(self) -> bytes: ...


# Get logger for this module.
logger = logging.getLogger(__name__)

# RFC 2045 token characters: printable ASCII except SPACE and tspecials.
# fmt: off
TOKEN_CHARS_SET = frozenset(
    chr(c) for c in range(0x21, 0x7F)
) - frozenset('()<>@,;:\\"/[]?=')
# fmt: on

WHITESPACE = " \t"


def canonical_key(name: str) -> str:
    """Returns the canonical form of a header field name, so that
    ``content-transfer-encoding`` becomes ``Content-Transfer-Encoding``.
    """
    return "-".join(word.capitalize() for word in name.split("-"))


class Headers:
    """An ordered, case-insensitive header mapping.  Each canonical field
    name maps to the list of its values, in the order they arrived; a field
    that appears twice keeps both values.
    """

    def __init__(self, fields: Iterable[tuple[str, str]] = ()) -> None:
        self._fields: dict[str, list[str]] = {}
        for name, value in fields:
            self.add(name, value)

    def add(self, name: str, value: str) -> None:
        self._fields.setdefault(canonical_key(name), []).append(value)

    def get(self, name: str, default: str = "") -> str:
        """Returns the first value of the given field, or ``default``."""
        values = self._fields.get(canonical_key(name))
        if not values:
            return default
        return values[0]

    def get_all(self, name: str) -> list[str]:
        return list(self._fields.get(canonical_key(name), ()))

    def items(self) -> Iterator[tuple[str, str]]:
        for name, values in self._fields.items():
            for value in values:
                yield name, value

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and canonical_key(name) in self._fields

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Headers):
            return self._fields == other._fields
        else:
            return NotImplemented

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({list(self.items())!r})"


def _decode_line(line: bytes) -> str:
    try:
        return line.decode("utf-8")
    except UnicodeDecodeError:
        return line.decode("latin-1")


def read_header(reader: SupportsReadline) -> Headers:
    """Reads one header block from ``reader``, up to and including the blank
    line that terminates it.  The end of the stream also ends the block, so
    the unconsumed remainder of ``reader`` is the body.

    Folded (continuation) lines are joined to the previous value with a
    single space.  Raises :class:`HeaderParseError` on malformed syntax.
    """
    headers = Headers()
    name: str | None = None
    value: list[str] = []

    while True:
        line = _decode_line(reader.readline().rstrip(b"\r\n"))
        if not line:
            break

        if line[0] in WHITESPACE:
            if name is None:
                raise HeaderParseError(f"Malformed MIME header initial line: {line!r}")
            value.append(line.strip())
            continue

        if name is not None:
            headers.add(name, " ".join(v for v in value if v))

        field, sep, rest = line.partition(":")
        field = field.rstrip(WHITESPACE)
        if not sep or not field or not all(c in TOKEN_CHARS_SET for c in field):
            raise HeaderParseError(f"Malformed MIME header line: {line!r}")
        name = field
        value = [rest.strip()]

    if name is not None:
        headers.add(name, " ".join(v for v in value if v))

    logger.debug("Read header block with %d fields", len(headers))
    return headers


def _consume_token(v: str) -> tuple[str, str]:
    i = 0
    while i < len(v) and v[i] in TOKEN_CHARS_SET:
        i += 1
    return v[:i], v[i:]


def _consume_value(v: str) -> tuple[str, str]:
    """Consumes a token or a quoted-string.  Returns ("", v) when there is
    neither, or when a quoted-string is never closed.
    """
    if not v:
        return "", v
    if v[0] != '"':
        return _consume_token(v)

    buffer: list[str] = []
    i = 1
    while i < len(v):
        c = v[i]
        if c == '"':
            return "".join(buffer), v[i + 1 :]
        if c == "\\" and i + 1 < len(v):
            i += 1
            c = v[i]
        elif c in "\r\n":
            break
        buffer.append(c)
        i += 1
    return "", v


def _consume_param(v: str) -> tuple[str, str, str]:
    rest = v.lstrip(WHITESPACE)
    if not rest.startswith(";"):
        return "", "", v
    rest = rest[1:].lstrip(WHITESPACE)

    name, rest = _consume_token(rest)
    if not name:
        return "", "", v
    rest = rest.lstrip(WHITESPACE)
    if not rest.startswith("="):
        return "", "", v
    rest = rest[1:].lstrip(WHITESPACE)

    value, rest2 = _consume_value(rest)
    if value == "" and rest2 == rest:
        return "", "", v
    return name.lower(), value, rest2


def _check_media_type(media_type: str) -> None:
    token, rest = _consume_token(media_type)
    if not token:
        raise MediaTypeError("No media type")
    if not rest:
        # A bare token, as used by Content-Disposition.
        return
    if not rest.startswith("/"):
        raise MediaTypeError("Expected slash after first token")
    subtype, rest = _consume_token(rest[1:])
    if not subtype:
        raise MediaTypeError("Expected token after slash")
    if rest:
        raise MediaTypeError("Unexpected content after media subtype")


def _decode_rfc2231(value: str, charset: str) -> str | None:
    try:
        return unquote_to_bytes(value).decode(charset or "us-ascii")
    except (LookupError, UnicodeDecodeError):
        return None


def _collapse_params(raw: dict[str, str]) -> dict[str, str]:
    """Assembles RFC 2231 extended (``name*``) and continued (``name*0``,
    ``name*1*``, ...) parameters into plain ones.  Extended values win over
    plain values of the same name; undecodable extended values are dropped.
    """
    params: dict[str, str] = {}
    bases: dict[str, None] = {}
    for key, value in raw.items():
        if "*" in key:
            bases[key.split("*", 1)[0]] = None
        else:
            params[key] = value

    for base in bases:
        single = raw.get(base + "*")
        if single is not None:
            charset, _language, text = email.utils.decode_rfc2231(single)
            decoded = _decode_rfc2231(text, charset or "")
            if decoded is not None:
                params[base] = decoded
            continue

        pieces: list[str] = []
        charset = ""
        n = 0
        while True:
            simple = raw.get(f"{base}*{n}")
            encoded = raw.get(f"{base}*{n}*")
            if simple is not None:
                pieces.append(simple)
            elif encoded is not None:
                if n == 0:
                    label, _language, encoded = email.utils.decode_rfc2231(encoded)
                    charset = label or ""
                decoded = _decode_rfc2231(encoded, charset)
                if decoded is None:
                    break
                pieces.append(decoded)
            else:
                break
            n += 1
        if pieces:
            params[base] = "".join(pieces)

    return params


def parse_media_type(value: str) -> tuple[str, dict[str, str]]:
    """
    Parses a Content-Type or Content-Disposition value into a tuple of the
    form::

        (media_type, {parameters})

    The media type and the parameter names are lower-cased.  Raises
    :class:`MediaTypeError` if the value is malformed.
    """
    media_type, sep, rest = value.partition(";")
    media_type = media_type.strip().lower()
    _check_media_type(media_type)

    raw: dict[str, str] = {}
    v = sep + rest
    while v:
        v = v.lstrip(WHITESPACE)
        if not v:
            break
        key, param_value, v2 = _consume_param(v)
        if not key:
            if v.strip() == ";":
                # Ignore a trailing semicolon.
                break
            raise MediaTypeError(f"Invalid media parameter in {value!r}")
        if key in raw:
            raise MediaTypeError(f"Duplicate parameter name {key!r}")
        raw[key] = param_value
        v = v2

    return media_type, _collapse_params(raw)


def decode_header(value: str) -> str:
    """Decodes RFC 2047 encoded-words (``=?charset?Q?...?=``) in a header
    value.  If decoding fails, the value is returned unchanged.
    """
    if "=?" not in value:
        return value
    try:
        return str(email.header.make_header(email.header.decode_header(value)))
    except (email.errors.MessageError, LookupError, UnicodeError) as err:
        logger.debug("Could not decode header value %r: %s", value, err)
        return value
