"""Shared fixtures for linepipe tests."""

import asyncio
from pathlib import Path
from typing import AsyncIterator, Iterable

import pytest

NUMBERED = "".join(f"{n}\n" for n in range(1, 11))


@pytest.fixture
def numbered_file(tmp_path: Path) -> Path:
    """File holding the lines 1..10, one per line."""
    path = tmp_path / "input.txt"
    path.write_bytes(NUMBERED.encode())
    return path


async def trickle(chunks: Iterable[bytes], delay: float = 0) -> AsyncIterator[bytes]:
    """Yield chunks one at a time, giving the event loop a turn in between."""
    for chunk in chunks:
        await asyncio.sleep(delay)
        yield chunk


def split_every(data: bytes, size: int) -> list:
    """Cut ``data`` into chunks of ``size`` bytes."""
    return [data[i:i + size] for i in range(0, len(data), size)]
