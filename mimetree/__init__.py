__version__ = "0.1.0"

from .exceptions import (
    DecodeError,
    HeaderParseError,
    MediaTypeError,
    MimeError,
    MultipartParseError,
    ParseError,
    UnexpectedEndError,
)
from .headers import Headers, parse_media_type, read_header
from .parts import Issue, IssueKind, Part, PartParser, read_parts

__all__ = (
    "DecodeError",
    "HeaderParseError",
    "Headers",
    "Issue",
    "IssueKind",
    "MediaTypeError",
    "MimeError",
    "MultipartParseError",
    "ParseError",
    "Part",
    "PartParser",
    "UnexpectedEndError",
    "parse_media_type",
    "read_header",
    "read_parts",
)
