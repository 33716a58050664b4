import io
import sys

import atheris
from helpers import EnhancedDataProvider

with atheris.instrument_imports():
    from mimetree.exceptions import MimeError
    from mimetree.parts import read_parts


def parse_raw_document(fdp: EnhancedDataProvider) -> None:
    root = read_parts(io.BytesIO(fdp.ConsumeRandomBytes()))
    for part in root.walk():
        part.read()


def parse_multipart_document(fdp: EnhancedDataProvider) -> None:
    boundary = "boundary"
    body = (
        f"Content-Type: multipart/mixed; boundary={boundary}\r\n\r\n"
        f"--{boundary}\r\n"
        f"{fdp.ConsumeHeaderBlock()}\r\n"
        f"{fdp.ConsumeRandomString()}\r\n"
        f"--{boundary}--\r\n"
    )
    root = read_parts(io.BytesIO(body.encode("latin1", errors="ignore")), config={"CHUNK_SIZE": 16})
    for part in root.walk():
        part.read()


def TestOneInput(data: bytes) -> None:
    fdp = EnhancedDataProvider(data)
    targets = [parse_raw_document, parse_multipart_document]
    target = fdp.PickValueInList(targets)

    try:
        target(fdp)
    except MimeError:
        return


def main():
    atheris.Setup(sys.argv, TestOneInput)
    atheris.Fuzz()


if __name__ == "__main__":
    main()
