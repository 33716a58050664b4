import atheris


class EnhancedDataProvider(atheris.FuzzedDataProvider):
    def ConsumeRandomBytes(self) -> bytes:
        return self.ConsumeBytes(self.ConsumeIntInRange(0, self.remaining_bytes()))

    def ConsumeRandomString(self) -> str:
        return self.ConsumeUnicodeNoSurrogates(self.ConsumeIntInRange(0, self.remaining_bytes()))

    def ConsumeHeaderBlock(self) -> str:
        """A few header lines picked from the fields the parser looks at."""
        names = ["Content-Type", "Content-Disposition", "Content-Transfer-Encoding", "X-Other"]
        lines = []
        for _ in range(self.ConsumeIntInRange(0, 4)):
            value = self.ConsumeUnicodeNoSurrogates(self.ConsumeIntInRange(0, 40))
            lines.append(f"{self.PickValueInList(names)}: {value}\r\n")
        return "".join(lines)
