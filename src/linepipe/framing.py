"""Line framing of arbitrarily chunked byte streams."""

from typing import AsyncIterable, AsyncIterator, Iterable, List, Union

from .records import LF, LineRecord

Chunk = Union[bytes, bytearray, memoryview, str]


class LineFramer:
    """Incremental splitter turning byte chunks into LineRecords.

    Bytes of a line whose terminator has not arrived yet are held back
    until a later chunk completes it, or until flush() at end of input.
    State belongs to one framer instance; use a new framer per stream.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding
        self._pending: List[bytes] = []

    def feed(self, chunk: Chunk) -> List[LineRecord]:
        """Consume one chunk and return the records it completes."""
        if isinstance(chunk, str):
            chunk = chunk.encode(self.encoding)
        else:
            chunk = bytes(chunk)

        if LF not in chunk:
            if chunk:
                self._pending.append(chunk)
            return []

        if self._pending:
            self._pending.append(chunk)
            buffer = b"".join(self._pending)
            self._pending = []
        else:
            buffer = chunk

        records = []
        start = 0
        while True:
            end = buffer.find(LF, start)
            if end < 0:
                break
            # A CR left at the end of the previous chunk lands in this line, so CRLF survives.
            records.append(LineRecord.from_bytes(buffer[start:end + 1]))
            start = end + 1

        if start < len(buffer):
            self._pending.append(buffer[start:])
        return records

    def flush(self) -> List[LineRecord]:
        """Return the unterminated residual as a final record, if any."""
        if not self._pending:
            return []
        residual = b"".join(self._pending)
        self._pending = []
        return [LineRecord(residual)]

    @property
    def pending_bytes(self) -> int:
        return sum(len(part) for part in self._pending)


async def frame_lines(
    chunks: Union[AsyncIterable[Chunk], Iterable[Chunk]],
    encoding: str = "utf-8",
) -> AsyncIterator[LineRecord]:
    """Yield the LineRecords contained in a chunk stream, in order."""
    framer = LineFramer(encoding)

    if hasattr(chunks, "__aiter__"):
        async for chunk in chunks:
            for record in framer.feed(chunk):
                yield record
    else:
        for chunk in chunks:
            for record in framer.feed(chunk):
                yield record

    for record in framer.flush():
        yield record
