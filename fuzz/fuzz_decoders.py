import io
import sys

import atheris
from helpers import EnhancedDataProvider

with atheris.instrument_imports():
    from mimetree.decoders import Base64Cleaner, Base64Decoder, CharsetDecoder, QuotedPrintableDecoder
    from mimetree.exceptions import DecodeError


def fuzz_base64_decoder(fdp: EnhancedDataProvider) -> None:
    decoder = Base64Decoder(Base64Cleaner(io.BytesIO(fdp.ConsumeRandomBytes())), chunk_size=7)
    decoder.read()


def fuzz_quoted_decoder(fdp: EnhancedDataProvider) -> None:
    decoder = QuotedPrintableDecoder(io.BytesIO(fdp.ConsumeRandomBytes()), chunk_size=5)
    decoder.read()


def fuzz_charset_decoder(fdp: EnhancedDataProvider) -> None:
    charset = fdp.PickValueInList(["utf-8", "iso-8859-1", "shift_jis", "utf-16"])
    decoder = CharsetDecoder(io.BytesIO(fdp.ConsumeRandomBytes()), charset, errors="strict", chunk_size=3)
    decoder.read()


def TestOneInput(data: bytes) -> None:
    fdp = EnhancedDataProvider(data)
    targets = [fuzz_base64_decoder, fuzz_quoted_decoder, fuzz_charset_decoder]
    target = fdp.PickValueInList(targets)

    try:
        target(fdp)
    except DecodeError:
        return


def main():
    atheris.Setup(sys.argv, TestOneInput)
    atheris.Fuzz()


if __name__ == "__main__":
    main()
