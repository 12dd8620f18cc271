"""Destinations and the sink adapter terminating a pipeline."""

import asyncio
import logging
import os
from typing import AsyncIterator, BinaryIO, Optional, Protocol, Union, runtime_checkable

import aiofiles

from .records import LineRecord

logger = logging.getLogger(__name__)

Framing = Optional[Union[str, bytes]]


@runtime_checkable
class Destination(Protocol):
    """Byte sink with close and abort signalling."""

    async def write(self, data: bytes) -> None:
        ...

    async def close(self, data: Optional[bytes] = None) -> None:
        """Write ``data`` (if any) and close; returns when fully closed."""
        ...

    async def abort(self, exc: BaseException) -> None:
        """Release the destination without a clean close."""
        ...


class FileDestination:
    """File written through aiofiles."""

    def __init__(self, path: Union[str, "os.PathLike[str]"], handle) -> None:
        self.path = path
        self._handle = handle

    @classmethod
    async def open(cls, path: Union[str, "os.PathLike[str]"], mode: str = "wb") -> "FileDestination":
        handle = await aiofiles.open(path, mode)
        return cls(path, handle)

    async def write(self, data: bytes) -> None:
        await self._handle.write(data)

    async def close(self, data: Optional[bytes] = None) -> None:
        try:
            if data:
                await self._handle.write(data)
            await self._handle.flush()
        finally:
            await self._handle.close()

    async def abort(self, exc: BaseException) -> None:
        logger.debug(
            "Aborting file destination",
            extra={"extra_fields": {"path": str(self.path), "error_type": type(exc).__name__}},
        )
        try:
            await self._handle.close()
        except OSError:
            logger.warning(f"Failed to close aborted destination {self.path}", exc_info=True)


class BinaryIODestination:
    """Synchronous binary file object, e.g. sys.stdout.buffer or io.BytesIO."""

    def __init__(self, fileobj: BinaryIO, close_fileobj: bool = False) -> None:
        self.fileobj = fileobj
        self.close_fileobj = close_fileobj

    async def write(self, data: bytes) -> None:
        self.fileobj.write(data)

    async def close(self, data: Optional[bytes] = None) -> None:
        if data:
            self.fileobj.write(data)
        self.fileobj.flush()
        if self.close_fileobj:
            self.fileobj.close()

    async def abort(self, exc: BaseException) -> None:
        if self.close_fileobj:
            self.fileobj.close()


class StreamDestination:
    """asyncio.StreamWriter, e.g. a socket or a subprocess pipe."""

    def __init__(self, writer: asyncio.StreamWriter) -> None:
        self.writer = writer

    async def write(self, data: bytes) -> None:
        self.writer.write(data)
        await self.writer.drain()

    async def close(self, data: Optional[bytes] = None) -> None:
        if data:
            self.writer.write(data)
        self.writer.close()
        await self.writer.wait_closed()

    async def abort(self, exc: BaseException) -> None:
        self.writer.transport.abort()


def _as_bytes(value: Framing, encoding: str) -> Optional[bytes]:
    if value is None:
        return None
    if isinstance(value, str):
        return value.encode(encoding)
    return bytes(value)


async def write_out(
    records: AsyncIterator[LineRecord],
    destination: Union[Destination, str, "os.PathLike[str]"],
    *,
    pre: Framing = None,
    post: Framing = None,
    encoding: str = "utf-8",
) -> None:
    """Write every record to ``destination`` between ``pre`` and ``post``.

    ``post`` is handed to the destination's close so it is flushed before
    completion is reported. On any failure the destination is aborted and
    the original exception is re-raised.
    """
    if isinstance(destination, (str, os.PathLike)):
        destination = await FileDestination.open(destination)

    header = _as_bytes(pre, encoding)
    footer = _as_bytes(post, encoding)

    written = 0
    try:
        if header:
            await destination.write(header)
        async for record in records:
            await destination.write(bytes(record))
            written += 1
        await destination.close(footer)
    except BaseException as e:
        await destination.abort(e)
        raise

    logger.debug(
        "Sink closed",
        extra={"extra_fields": {"destination": type(destination).__name__, "records": written}},
    )
