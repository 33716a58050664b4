from __future__ import annotations


class MimeError(ValueError):
    """Base error class for the MIME part parser."""


class ParseError(MimeError):
    """This exception (or a subclass) is raised when there is an error while
    parsing something.
    """


class HeaderParseError(ParseError):
    """Raised when a header block is syntactically malformed, for example a
    line without a colon or a continuation line with nothing to continue.
    """


class MediaTypeError(ParseError):
    """Raised by :func:`mimetree.headers.parse_media_type` when a
    Content-Type (or Content-Disposition) value cannot be parsed.
    """


class MultipartParseError(ParseError):
    """This is a specific error that is raised when the structure of a
    multipart body is broken beyond recovery.
    """

    #: The boundary of the multipart region in which the error occurred.  It
    #: will be None if not known.
    boundary: str | None = None

    def __init__(self, message: str, boundary: str | None = None) -> None:
        super().__init__(message)
        self.boundary = boundary


class UnexpectedEndError(MultipartParseError):
    """Raised when the stream ends inside a multipart region, before the next
    boundary delimiter was found.
    """


class DecodeError(ParseError):
    """This exception is raised when there is a decoding error - for example
    with the Base64Decoder or the CharsetDecoder.  Decoders are lazy, so it
    surfaces while reading, not while building the reader chain.
    """
