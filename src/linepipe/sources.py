"""Byte sources feeding the line framer."""

import asyncio
import logging
import os
from typing import Any, AsyncIterator, Union

import aiofiles

logger = logging.getLogger(__name__)

PathOrFd = Union[str, "os.PathLike[str]", int]


async def read_file(path: PathOrFd, chunk_size: int = 64 * 1024) -> AsyncIterator[bytes]:
    """Read a file in chunks.

    The file is opened on first iteration, so a missing path surfaces as
    the unmodified FileNotFoundError of the consumer's first read.
    Integer descriptors (e.g. 0 for stdin) are read but not closed.
    """
    closefd = not isinstance(path, int)
    async with aiofiles.open(path, "rb", closefd=closefd) as handle:
        total = 0
        while True:
            chunk = await handle.read(chunk_size)
            if not chunk:
                break
            total += len(chunk)
            yield chunk

    logger.debug(
        "Finished reading source",
        extra={"extra_fields": {"source": str(path), "bytes": total}},
    )


async def iter_chunks(source: Any, chunk_size: int = 64 * 1024) -> AsyncIterator[bytes]:
    """Adapt any supported byte source to an async chunk iterator.

    Supported: bytes/bytearray/str (a single chunk), asyncio.StreamReader
    (read in chunk_size pieces), async iterables and plain iterables of chunks.
    """
    if isinstance(source, (bytes, bytearray, memoryview, str)):
        yield source
    elif isinstance(source, asyncio.StreamReader):
        while True:
            chunk = await source.read(chunk_size)
            if not chunk:
                break
            yield chunk
    elif hasattr(source, "__aiter__"):
        async for chunk in source:
            yield chunk
    elif hasattr(source, "__iter__"):
        for chunk in source:
            yield chunk
    else:
        raise TypeError(f"Unsupported byte source: {type(source).__name__}")
