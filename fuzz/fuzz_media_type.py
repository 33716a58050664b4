import sys

import atheris
from helpers import EnhancedDataProvider

with atheris.instrument_imports():
    from mimetree.exceptions import MediaTypeError
    from mimetree.headers import parse_media_type


def TestOneInput(data: bytes) -> None:
    fdp = EnhancedDataProvider(data)
    try:
        parse_media_type(fdp.ConsumeRandomString())
    except MediaTypeError:
        return


def main():
    atheris.Setup(sys.argv, TestOneInput)
    atheris.Fuzz()


if __name__ == "__main__":
    main()
