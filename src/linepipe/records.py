"""Line record type."""

from dataclasses import dataclass

LF = b"\n"
CRLF = b"\r\n"
TERMINATORS = (CRLF, LF, b"")


@dataclass(frozen=True)
class LineRecord:
    """One logical line: its bytes plus the original terminator.

    Only the last record of a stream may have an empty terminator.
    """

    body: bytes
    terminator: bytes = b""

    def __post_init__(self) -> None:
        if self.terminator not in TERMINATORS:
            raise ValueError(f"Invalid line terminator: {self.terminator!r}")

    @classmethod
    def from_bytes(cls, data: bytes) -> "LineRecord":
        """Split a raw line into body and terminator."""
        data = bytes(data)
        if data.endswith(CRLF):
            return cls(data[:-2], CRLF)
        if data.endswith(LF):
            return cls(data[:-1], LF)
        return cls(data)

    @classmethod
    def from_text(cls, text: str, encoding: str = "utf-8", errors: str = "replace") -> "LineRecord":
        return cls.from_bytes(text.encode(encoding, errors))

    def __bytes__(self) -> bytes:
        return self.body + self.terminator

    def __len__(self) -> int:
        return len(self.body) + len(self.terminator)

    def text(self, encoding: str = "utf-8", errors: str = "replace") -> str:
        """Decode the whole line, terminator included."""
        return bytes(self).decode(encoding, errors)
