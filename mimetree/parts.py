from __future__ import annotations

import logging
from enum import Enum
from io import BytesIO
from typing import TYPE_CHECKING, NamedTuple

from .decoders import Base64Cleaner, Base64Decoder, CharsetDecoder, QuotedPrintableDecoder
from .exceptions import MediaTypeError, MimeError, MultipartParseError, UnexpectedEndError
from .headers import Headers, decode_header, parse_media_type, read_header
from .splitter import BoundarySplitter, StreamReader

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Iterator
    from typing import Any, Protocol, TypedDict

    class SupportsRead(Protocol):
        def read(self, __n: int = ...) -> bytes: ...

    class PartParserConfig(TypedDict):
        CHUNK_SIZE: int
        MAX_DEPTH: int
        CHARSET_ERRORS: str


# Get logger for this module.
logger = logging.getLogger(__name__)

MULTIPART_PREFIX = "multipart/"

# Content-Transfer-Encoding values that need no decoding.
IDENTITY_ENCODINGS = frozenset(("8bit", "7bit", "binary", ""))


class IssueKind(Enum):
    """The kinds of recoverable problems that can be recorded on a Part."""

    MISSING_CONTENT_TYPE = "Missing Content-Type"
    CONTENT_ENCODING = "Content-Transfer-Encoding"
    CHARSET_CONVERSION = "Character Set Conversion"
    MISSING_BOUNDARY = "Missing Boundary"
    MALFORMED_HEADER = "Malformed Header"


class Issue:
    """A recoverable problem found while parsing one Part.  Parsing carries
    on past it; it is recorded on the Part it belongs to.
    """

    def __init__(self, kind: IssueKind, message: str) -> None:
        self.kind = kind
        self.message = message

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Issue):
            return self.kind == other.kind and self.message == other.message
        else:
            return NotImplemented

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(kind={self.kind!r}, message={self.message!r})"


class ContentHeaders(NamedTuple):
    disposition: str
    file_name: str
    charset: str
    issues: list[Issue]


def resolve_content_headers(header: Headers, media_params: dict[str, str]) -> ContentHeaders:
    """
    Works out the disposition, file name and charset of a part from its
    Content-Disposition header and the parameters of its Content-Type.

    The file name comes from the first non-empty of the disposition's
    ``filename``, then the content type's ``name``, then its ``file``
    parameter.  The charset comes from the content type's ``charset``.

    This never raises; a Content-Disposition that cannot be parsed is
    reported in ``issues`` and otherwise ignored.
    """
    disposition = file_name = ""
    issues: list[Issue] = []

    raw_disposition = header.get("Content-Disposition")
    if raw_disposition:
        try:
            disposition, disposition_params = parse_media_type(raw_disposition)
        except MediaTypeError as err:
            issues.append(
                Issue(IssueKind.MALFORMED_HEADER, f"Could not parse Content-Disposition {raw_disposition!r}: {err}")
            )
        else:
            file_name = decode_header(disposition_params.get("filename", ""))

    if not file_name and media_params.get("name"):
        file_name = decode_header(media_params["name"])
    if not file_name and media_params.get("file"):
        file_name = decode_header(media_params["file"])

    return ContentHeaders(disposition, file_name, media_params.get("charset", ""), issues)


class Part:
    """
    One node of the MIME tree: either the whole document or one body part of
    a multipart.  Children form a singly linked list; a Part points at its
    first child, and each child at its next sibling.

    Leaf parts own a chain of three readers over their content:
    ``raw_reader`` (the bytes as transmitted), ``decoded_reader`` (with the
    transfer encoding reversed) and ``utf8_reader`` (converted from the
    part's charset to UTF-8).  A stage that has nothing to do is the same
    object as the one before it.  The readers are single pass.
    """

    def __init__(self, parent: Part | None = None, content_type: str = "") -> None:
        self.header = Headers()
        self.parent = parent
        self.first_child: Part | None = None
        self.next_sibling: Part | None = None

        self.content_type = content_type
        self.disposition = ""
        self.file_name = ""
        self.charset = ""
        self.issues: list[Issue] = []

        self.raw_reader: SupportsRead | None = None
        self.decoded_reader: SupportsRead | None = None
        self.utf8_reader: SupportsRead | None = None

    @property
    def is_multipart(self) -> bool:
        return self.content_type.startswith(MULTIPART_PREFIX)

    def read(self, size: int = -1) -> bytes:
        """Reads the decoded, UTF-8 converted content."""
        if self.utf8_reader is None:
            return b""
        return self.utf8_reader.read(size)

    def add_issue(self, kind: IssueKind, message: str) -> None:
        logger.warning("%s in %r: %s", kind.value, self.content_type, message)
        self.issues.append(Issue(kind, message))

    def children(self) -> Iterator[Part]:
        child = self.first_child
        while child is not None:
            yield child
            child = child.next_sibling

    def walk(self) -> Iterator[Part]:
        """Walks this part and all of its descendants, depth first, in
        document order.
        """
        yield self
        for child in self.children():
            yield from child.walk()

    def setup_content_headers(self, media_params: dict[str, str]) -> None:
        """Sets the disposition, file name and charset from the headers.  A
        charset that is already set is kept.
        """
        resolved = resolve_content_headers(self.header, media_params)
        self.disposition = resolved.disposition
        self.file_name = resolved.file_name
        if not self.charset:
            self.charset = resolved.charset
        for issue in resolved.issues:
            self.add_issue(issue.kind, issue.message)

    def build_content_readers(self, stream: SupportsRead, config: dict[str, Any] | None = None) -> None:
        """
        Buffers ``stream`` and sets up the reader chain on top of it, based
        on the Content-Transfer-Encoding header and the charset.

        If the transfer encoding is not recognized, no character set
        conversion is attempted.
        """
        config = config or {}
        chunk_size = config.get("CHUNK_SIZE", PartParser.DEFAULT_CONFIG["CHUNK_SIZE"])
        errors = config.get("CHARSET_ERRORS", PartParser.DEFAULT_CONFIG["CHARSET_ERRORS"])

        # Read raw content into buffer.
        content_reader: SupportsRead = BytesIO(stream.read())
        valid = True

        self.raw_reader = content_reader

        encoding = self.header.get("Content-Transfer-Encoding")
        transfer_encoding = encoding.lower()
        if transfer_encoding == "quoted-printable":
            content_reader = QuotedPrintableDecoder(content_reader, chunk_size)
        elif transfer_encoding == "base64":
            content_reader = Base64Decoder(Base64Cleaner(content_reader), chunk_size)
        elif transfer_encoding in IDENTITY_ENCODINGS:
            pass
        else:
            valid = False
            self.add_issue(IssueKind.CONTENT_ENCODING, f"Unrecognized Content-Transfer-Encoding type {encoding!r}")
        self.decoded_reader = content_reader

        if valid and self.charset:
            try:
                content_reader = CharsetDecoder(content_reader, self.charset, errors, chunk_size)
            except LookupError as err:
                self.add_issue(IssueKind.CHARSET_CONVERSION, str(err))
        self.utf8_reader = content_reader

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(content_type={self.content_type!r}, "
            f"disposition={self.disposition!r}, file_name={self.file_name!r}, "
            f"charset={self.charset!r}, issues={len(self.issues)})"
        )


class PartParser:
    """
    Reads a MIME document into a tree of :class:`Part` objects.

    Problems that leave the document readable (an unknown transfer encoding,
    an unknown charset, a missing top-level Content-Type, an unclosed final
    boundary, a nested multipart without a boundary) are recorded as issues
    on the affected Part.  Anything else
    raises a :class:`~mimetree.exceptions.MimeError` and no tree is returned.

    Config options:

    ``CHUNK_SIZE``
        How many bytes to read from a stream at a time.

    ``MAX_DEPTH``
        How deeply multiparts may nest before parsing is aborted.

    ``CHARSET_ERRORS``
        The codec error handler used when converting content to UTF-8.
    """

    DEFAULT_CONFIG: PartParserConfig = {
        "CHUNK_SIZE": 1048576,
        "MAX_DEPTH": 100,
        "CHARSET_ERRORS": "replace",
    }

    def __init__(self, config: dict[Any, Any] = {}) -> None:
        self.logger = logging.getLogger(__name__)

        self.config: PartParserConfig = self.DEFAULT_CONFIG.copy()
        self.config.update(config)  # type: ignore[typeddict-item]

        chunk_size = self.config["CHUNK_SIZE"]
        if not isinstance(chunk_size, int) or chunk_size < 1:
            raise ValueError(f"CHUNK_SIZE must be a positive integer, not {chunk_size!r}")

    def _root_boundary(self, root: Part, media_params: dict[str, str]) -> str:
        boundary = media_params.get("boundary", "")
        if not boundary:
            self.logger.error("No boundary given for %r", root.content_type)
            raise MultipartParseError(f"No boundary given for {root.content_type!r}")
        return boundary

    def parse(self, stream: SupportsRead | bytes) -> Part:
        if isinstance(stream, (bytes, bytearray)):
            stream = BytesIO(stream)
        reader = StreamReader(stream, self.config["CHUNK_SIZE"])

        header = read_header(reader)
        root = Part()
        root.header = header

        content_type = header.get("Content-Type")
        media_params: dict[str, str] = {}
        if not content_type:
            root.add_issue(IssueKind.MISSING_CONTENT_TYPE, "MIME parts should have a Content-Type header")
        else:
            root.content_type, media_params = parse_media_type(content_type)
        root.charset = media_params.get("charset", "")
        root.setup_content_headers(media_params)

        if root.is_multipart:
            self.parse_parts(root, reader, self._root_boundary(root, media_params))
        else:
            root.build_content_readers(reader, dict(self.config))

        return root

    def parse_parts(self, parent: Part, stream: SupportsRead, boundary: str, depth: int = 0) -> None:
        """
        Parses the boundary-delimited parts in ``stream`` into children of
        ``parent``, recursing into nested multiparts.
        """
        if depth >= self.config["MAX_DEPTH"]:
            raise MultipartParseError(f"Multipart nesting exceeds {self.config['MAX_DEPTH']} levels", boundary)

        splitter = BoundarySplitter(stream, boundary, self.config["CHUNK_SIZE"])
        prev_sibling: Part | None = None

        for header, part_stream in splitter:
            if not header:
                # An empty header most likely means the final boundary was not
                # closed with a trailing "--".  That is fine if this was the
                # last part.
                try:
                    next(splitter)
                except (StopIteration, UnexpectedEndError):
                    # The problem belongs to our sibling or parent, since this
                    # part does not really exist.
                    owner = prev_sibling if prev_sibling is not None else parent
                    owner.add_issue(IssueKind.MISSING_BOUNDARY, f"Boundary {boundary!r} was not closed correctly")
                    return
                except (MimeError, OSError) as err:
                    raise MultipartParseError(f"Error at boundary {boundary!r}: {err}", boundary) from err
                raise MultipartParseError(f"Empty header at boundary {boundary!r}", boundary)

            content_type = header.get("Content-Type")
            if not content_type:
                raise MultipartParseError(f"Missing Content-Type at boundary {boundary!r}", boundary)
            media_type, media_params = parse_media_type(content_type)

            # Insert ourselves into the tree.
            part = Part(parent, media_type)
            part.header = header
            if prev_sibling is not None:
                prev_sibling.next_sibling = part
            else:
                parent.first_child = part
            prev_sibling = part
            self.logger.debug("Found %r part at depth %d of boundary %r", media_type, depth, boundary)

            part.setup_content_headers(media_params)

            child_boundary = media_params.get("boundary", "")
            if part.is_multipart and child_boundary:
                self.parse_parts(part, part_stream, child_boundary, depth + 1)
            else:
                if part.is_multipart:
                    part.add_issue(
                        IssueKind.MISSING_BOUNDARY, f"No boundary given for {media_type!r}, reading it as a leaf"
                    )
                part.build_content_readers(part_stream, dict(self.config))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(config={self.config!r})"


def read_parts(stream: SupportsRead | bytes, config: dict[Any, Any] = {}) -> Part:
    """Reads a MIME document from ``stream`` (or a bytes object) and parses it
    into a tree of :class:`Part` objects, returning the root.

    :param stream: any object with a ``read(n)`` method.
    :param config: options to override, see :class:`PartParser`.
    """
    return PartParser(config=config).parse(stream)
