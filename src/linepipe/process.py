"""External processes used as line filters."""

import asyncio
import contextlib
import logging
from typing import Any, AsyncIterator, Sequence

from .errors import ProcessExitError
from .framing import frame_lines
from .records import LineRecord
from .sources import iter_chunks

logger = logging.getLogger(__name__)


async def _feed(records: AsyncIterator[LineRecord], stdin: asyncio.StreamWriter, command: str) -> None:
    """Copy records into the process input, closing it at end of input."""
    try:
        async for record in records:
            stdin.write(bytes(record))
            await stdin.drain()
    except (BrokenPipeError, ConnectionResetError):
        # The process stopped reading (e.g. `head`); its output still counts.
        logger.debug(f"Process {command} closed its input early")
    finally:
        stdin.close()


async def spawn_filter(
    records: AsyncIterator[LineRecord],
    command: str,
    args: Sequence[str] = (),
    *,
    chunk_size: int = 64 * 1024,
    encoding: str = "utf-8",
    check: bool = False,
    **options: Any,
) -> AsyncIterator[LineRecord]:
    """Run ``records`` through an external command and yield its output lines.

    The process is launched on first iteration, so launch failures end
    this stream rather than raising at construction time. stderr is not
    captured; stdio settings in ``options`` are overridden.
    """
    options.update(
        stdin=asyncio.subprocess.PIPE,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.DEVNULL,
    )
    try:
        proc = await asyncio.create_subprocess_exec(command, *args, **options)
    except BaseException:
        aclose = getattr(records, "aclose", None)
        if aclose is not None:
            await aclose()
        raise
    logger.debug(
        "Started filter process",
        extra={"extra_fields": {"command": command, "pid": proc.pid}},
    )

    feeder = asyncio.ensure_future(_feed(records, proc.stdin, command))
    try:
        async for record in frame_lines(iter_chunks(proc.stdout, chunk_size), encoding):
            yield record

        # Upstream errors surface here, after the process output is drained.
        await feeder
        returncode = await proc.wait()
    finally:
        if not feeder.done():
            feeder.cancel()
        if proc.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()

    if returncode != 0:
        logger.warning(
            f"Filter process {command} exited with status {returncode}",
            extra={"extra_fields": {"command": command, "returncode": returncode}},
        )
        if check:
            raise ProcessExitError(command, returncode)
