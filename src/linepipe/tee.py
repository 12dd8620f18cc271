"""Branching one record stream into independent consumers."""

import asyncio
from collections import deque
from typing import AsyncIterator, Deque, List, Optional

from .records import LineRecord


class Tee:
    """Fan one upstream iterator out to ``n`` branch iterators.

    Whichever branch runs out of buffered records advances the upstream
    and copies the record to every other branch. A slow branch therefore
    buffers everything the fastest branch has read.
    """

    def __init__(self, source: AsyncIterator[LineRecord], n: int = 2) -> None:
        if n < 1:
            raise ValueError(f"Tee needs at least one branch, got {n}")
        self._source = source
        self._buffers: List[Deque[LineRecord]] = [deque() for _ in range(n)]
        self._lock = asyncio.Lock()
        self._exhausted = False
        self._error: Optional[BaseException] = None

    def branches(self) -> List[AsyncIterator[LineRecord]]:
        return [self._branch(buffer) for buffer in self._buffers]

    async def _branch(self, buffer: Deque[LineRecord]) -> AsyncIterator[LineRecord]:
        while True:
            if buffer:
                yield buffer.popleft()
                continue
            if self._exhausted:
                if self._error is not None:
                    raise self._error
                return

            # An async generator cannot be advanced by two branches at once.
            async with self._lock:
                if buffer or self._exhausted:
                    continue
                try:
                    record = await self._source.__anext__()
                except StopAsyncIteration:
                    self._exhausted = True
                    continue
                except Exception as e:
                    self._exhausted = True
                    self._error = e
                    continue
                for other in self._buffers:
                    other.append(record)
