from __future__ import annotations

import base64
import unittest
from io import BytesIO

from mimetree.decoders import (
    Base64Cleaner,
    Base64Decoder,
    CharsetDecoder,
    QuotedPrintableDecoder,
    for_charset,
)
from mimetree.exceptions import DecodeError


class TestBase64Cleaner(unittest.TestCase):
    def test_strips_line_breaks(self) -> None:
        c = Base64Cleaner(BytesIO(b"Zm9v\r\nYmFy\n"))
        self.assertEqual(c.read(), b"Zm9vYmFy")

    def test_strips_junk(self) -> None:
        c = Base64Cleaner(BytesIO(b"Zm9v !*\x00YmFy=="))
        self.assertEqual(c.read(), b"Zm9vYmFy==")

    def test_sized_read_skips_empty_chunks(self) -> None:
        c = Base64Cleaner(BytesIO(b"\r\n\r\nZm9v"))
        self.assertEqual(c.read(2), b"Zm")
        self.assertEqual(c.read(2), b"9v")
        self.assertEqual(c.read(2), b"")


class TestBase64Decoder(unittest.TestCase):
    # Note: base64('foobar') == 'Zm9vYmFy'
    def decode(self, data: bytes, chunk_size: int = 8192) -> bytes:
        return Base64Decoder(BytesIO(data), chunk_size=chunk_size).read()

    def test_simple(self) -> None:
        self.assertEqual(self.decode(b"Zm9vYmFy"), b"foobar")

    def test_bad(self) -> None:
        with self.assertRaises(DecodeError):
            self.decode(b"Zm9v!mFy")

    def test_split_properly(self) -> None:
        for chunk_size in range(1, 9):
            self.assertEqual(self.decode(b"Zm9vYmFy", chunk_size), b"foobar")

    def test_bad_length(self) -> None:
        # Missing ending 'y'.
        with self.assertRaises(DecodeError):
            self.decode(b"Zm9vYmF")

    def test_error_is_lazy(self) -> None:
        d = Base64Decoder(BytesIO(b"Zm9vYmF"), chunk_size=4)
        self.assertEqual(d.read(3), b"foo")
        with self.assertRaises(DecodeError):
            d.read()

    def test_sized_reads(self) -> None:
        d = Base64Decoder(BytesIO(b"Zm9vYmFy"), chunk_size=3)
        self.assertEqual(d.read(1), b"f")
        self.assertEqual(d.read(4), b"ooba")
        self.assertEqual(d.read(), b"r")
        self.assertEqual(d.read(), b"")

    def test_wrapped_lines_round_trip(self) -> None:
        original = bytes(range(256)) * 3
        encoded = base64.encodebytes(original).replace(b"\n", b"\r\n")
        self.assertIn(b"\r\n", encoded[:-2])

        for chunk_size in (1, 5, 76, 8192):
            d = Base64Decoder(Base64Cleaner(BytesIO(encoded)), chunk_size=chunk_size)
            self.assertEqual(d.read(), original)

    def test_repr(self) -> None:
        self.assertTrue(repr(Base64Decoder(BytesIO())).startswith("Base64Decoder(underlying="))


class TestQuotedPrintableDecoder(unittest.TestCase):
    def decode(self, data: bytes, chunk_size: int = 8192) -> bytes:
        return QuotedPrintableDecoder(BytesIO(data), chunk_size=chunk_size).read()

    def test_simple(self) -> None:
        self.assertEqual(self.decode(b"foobar"), b"foobar")

    def test_with_escape(self) -> None:
        self.assertEqual(self.decode(b"foo=3Dbar"), b"foo=bar")

    def test_with_newline_escape(self) -> None:
        self.assertEqual(self.decode(b"foo=\r\nbar"), b"foobar")

    def test_with_only_newline_escape(self) -> None:
        self.assertEqual(self.decode(b"foo=\nbar"), b"foobar")

    def test_escape_near_end(self) -> None:
        self.assertEqual(self.decode(b"Gr=FC=DFe"), b"Gr\xfc\xdfe")

    def test_with_split_escape(self) -> None:
        for data in (b"foo=3Dbar", b"foo=\r\nbar", b"Gr=FC=DFe", b"q=3AX", b"=3D=3D=3D"):
            expected = self.decode(data)
            for chunk_size in range(1, len(data) + 1):
                self.assertEqual(self.decode(data, chunk_size), expected, (data, chunk_size))

    def test_not_aligned(self) -> None:
        self.assertEqual(self.decode(b"=3AX"), b":X")
        self.assertEqual(self.decode(b"q=3AX"), b"q:X")


class TestCharsetDecoder(unittest.TestCase):
    def test_latin1(self) -> None:
        d = CharsetDecoder(BytesIO(b"caf\xe9"), "iso-8859-1")
        self.assertEqual(d.read(), "café".encode("utf-8"))

    def test_multibyte_split_across_chunks(self) -> None:
        data = "日本語テキスト".encode("shift_jis")
        for chunk_size in range(1, 5):
            d = CharsetDecoder(BytesIO(data), "Shift_JIS", chunk_size=chunk_size)
            self.assertEqual(d.read(), "日本語テキスト".encode("utf-8"))

    def test_replaces_invalid_bytes(self) -> None:
        d = CharsetDecoder(BytesIO(b"ok\xff"), "utf-8")
        self.assertEqual(d.read(), "ok�".encode("utf-8"))

    def test_strict_errors_are_lazy(self) -> None:
        d = CharsetDecoder(BytesIO(b"ok\xff"), "utf-8", errors="strict")
        with self.assertRaises(DecodeError):
            d.read()

    def test_unknown_label(self) -> None:
        with self.assertRaises(LookupError):
            CharsetDecoder(BytesIO(b""), "x-klingon")

    def test_quoted_label(self) -> None:
        d = CharsetDecoder(BytesIO(b"abc"), ' "us-ascii" ')
        self.assertEqual(d.read(), b"abc")

    def test_rejects_non_text_codecs(self) -> None:
        for label in ("base64", "zlib", "rot13"):
            with self.assertRaises(LookupError):
                for_charset(label)

    def test_for_charset(self) -> None:
        decoder = for_charset("windows-1252")()
        self.assertEqual(decoder.decode(b"\x80", final=True), "€")

    def test_rejects_codecs_that_never_decode(self) -> None:
        with self.assertRaises(LookupError):
            for_charset("undefined")

    def test_rejects_codecs_without_the_error_handler(self) -> None:
        self.assertIsNotNone(for_charset("idna"))
        with self.assertRaises(LookupError):
            for_charset("idna", "replace")
        with self.assertRaises(LookupError):
            CharsetDecoder(BytesIO(b"hi"), "idna")
