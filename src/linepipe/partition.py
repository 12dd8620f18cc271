"""Partitioning of one record stream into consecutive sections.

The upstream is pumped by its own task and pushes records into the
session as they arrive. Each section is consumed by caller code at its
own pace and pulls records through the session's reader. The session
bridges the two: a FIFO holds records that arrived before anyone asked,
and a request counter (0 or 1) remembers a pull that arrived before any
record.
"""

import asyncio
import inspect
import logging
import re
from collections import deque
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Deque,
    List,
    Literal,
    Optional,
    Pattern,
    Union,
)

from .pipeline.base import PipelineContext
from .records import LineRecord

logger = logging.getLogger(__name__)

MatcherFn = Callable[[str, int], bool]
Matcher = Union[str, Pattern[str], MatcherFn]
SectionHandler = Callable[[Any, int], Optional[Awaitable[Any]]]
Boundary = Literal["from", "to"]


def compile_matcher(matcher: Matcher) -> MatcherFn:
    """Normalize a boundary matcher to ``fn(text, count) -> bool``."""
    if isinstance(matcher, str):
        matcher = re.compile(matcher)
    if isinstance(matcher, re.Pattern):
        pattern = matcher
        return lambda text, count: pattern.search(text) is not None
    if callable(matcher):
        return matcher
    raise TypeError(f"Unsupported matcher type: {type(matcher).__name__}")


def every(num: int) -> MatcherFn:
    """Matcher cutting a section every ``num`` records."""
    if not isinstance(num, int) or num <= 0:
        raise ValueError(f"Section size must be a positive integer, got {num!r}")
    return lambda text, count: count % num == 0


class Section:
    """Bounded, pull-driven record stream handed to a section handler.

    Iterating it asks the session for records only when the local buffer
    is empty. It ends exactly once, when the session closes it.
    """

    def __init__(self, index: int, reader: Callable[[], None]) -> None:
        self.index = index
        self._reader = reader
        self._buffer: Deque[LineRecord] = deque()
        self._closed = False
        self._error: Optional[BaseException] = None
        self._waiter: Optional[asyncio.Future] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, record: LineRecord) -> None:
        self._buffer.append(record)
        self._wake()

    def close(self) -> None:
        self._closed = True
        self._wake()

    def fail(self, exc: BaseException) -> None:
        """End the section with an error once buffered records are read."""
        self._error = exc
        self._closed = True
        self._wake()

    def _wake(self) -> None:
        if self._waiter is not None and not self._waiter.done():
            self._waiter.set_result(None)

    def __aiter__(self) -> "Section":
        return self

    async def __anext__(self) -> LineRecord:
        while True:
            if self._buffer:
                return self._buffer.popleft()
            if self._error is not None:
                raise self._error
            if self._closed:
                raise StopAsyncIteration

            self._waiter = asyncio.get_running_loop().create_future()
            try:
                # The reader may deliver synchronously, resolving the waiter at once.
                self._reader()
                await self._waiter
            finally:
                self._waiter = None


class PartitionSession:
    """State of one partition run.

    All methods run on the event loop thread; no two of them interleave.
    """

    def __init__(
        self,
        matcher: MatcherFn,
        handler: SectionHandler,
        boundary: Boundary,
        pipe_factory: Callable[[Section, PipelineContext], Any],
        context: PipelineContext,
    ) -> None:
        if boundary not in ("from", "to"):
            raise ValueError(f"boundary must be 'from' or 'to', got {boundary!r}")

        self._matcher = matcher
        self._handler = handler
        self._boundary = boundary
        self._pipe_factory = pipe_factory
        self._context = context

        self._queue: Deque[LineRecord] = deque()
        # The first section opens without waiting for a pull.
        self._requests = 1
        self._section: Optional[Section] = None
        self._section_lines = 0
        self.lines_delivered = 0
        self.sections_opened = 0
        self._eos = False
        self._upstream_error: Optional[BaseException] = None
        self._ended = False
        self.halted = False
        self._completions: List[asyncio.Future] = []

        self.done: asyncio.Future = asyncio.get_running_loop().create_future()

    # Upstream events

    def on_record(self, record: LineRecord) -> None:
        if self.halted:
            return
        self._queue.append(record)
        self._drain()

    def on_end(self) -> None:
        self._eos = True
        self._drain()

    def on_error(self, exc: BaseException) -> None:
        """Upstream failed.

        Records already queued are still delivered on later pulls. Once the
        queue is empty the active section and the whole run fail with ``exc``.
        """
        if self.halted:
            self._settle(exc)
            return
        self._upstream_error = exc
        self._eos = True
        self._drain()

    # Section pull

    def read(self) -> None:
        """Reader callback invoked by the active section when it needs data."""
        if self.halted:
            return
        self._requests = 1
        self._drain()

    # Internals

    def _drain(self) -> None:
        while self._requests > 0 and self._queue and not self.halted:
            self._requests -= 1
            self._deliver(self._queue.popleft())

        if self._requests > 0 and self._eos and not self._ended:
            self._finish()

    def _deliver(self, record: LineRecord) -> None:
        try:
            if self._section is None:
                self._open_section()
            elif self._boundary == "from" and self._match(record):
                self._section.close()
                self._open_section()

            if self.halted:
                return

            self._section.push(record)
            self._section_lines += 1
            self.lines_delivered += 1

            if self._boundary == "to" and self._match(record):
                self._section.close()
                self._section = None
                # Nobody pulls until the next section exists; open it on the next record.
                self._requests = 1

        except Exception as exc:
            self._halt(exc)

    def _match(self, record: LineRecord) -> bool:
        return bool(self._matcher(self._context.decode(record), self._section_lines))

    def _open_section(self) -> None:
        index = self.sections_opened
        self.sections_opened += 1
        section = Section(index, self.read)
        self._section = section
        self._section_lines = 0

        logger.debug(
            "Opening section",
            extra={"extra_fields": {"pipeline": self._context.name, "section": index}},
        )

        pipe = self._pipe_factory(section, self._context.child(f"section{index}"))
        result = self._handler(pipe, index)
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._completions.append(task)
            task.add_done_callback(self._on_completion)

    def _halt(self, exc: BaseException) -> None:
        """Matcher or handler raised: stop reading upstream and fail the run."""
        logger.error(
            "Partition aborted",
            exc_info=exc,
            extra={"extra_fields": {"pipeline": self._context.name}},
        )
        self.halted = True
        if self._section is not None:
            self._section.fail(exc)
            self._section = None
        self._settle(exc)

    def _finish(self) -> None:
        self._requests = 0
        self._ended = True
        section, self._section = self._section, None

        if self._upstream_error is not None:
            self.halted = True
            if section is not None:
                section.fail(self._upstream_error)
            self._settle(self._upstream_error)
            return

        if section is not None:
            section.close()
        self._check_complete()

    def _on_completion(self, task: asyncio.Future) -> None:
        if task.cancelled():
            self._settle(asyncio.CancelledError())
        elif task.exception() is not None:
            self._settle(task.exception())
        self._check_complete()

    def _check_complete(self) -> None:
        if self._ended and all(task.done() for task in self._completions):
            if not self.done.done():
                logger.info(
                    "Partition completed",
                    extra={
                        "extra_fields": {
                            "pipeline": self._context.name,
                            "sections": self.sections_opened,
                            "lines": self.lines_delivered,
                        }
                    },
                )
                self.done.set_result(None)

    def _settle(self, exc: BaseException) -> None:
        if not self.done.done():
            self.done.set_exception(exc)
        elif self.done.cancelled() or self.done.exception() is not exc:
            logger.warning(
                "Additional section failure after partition settled",
                exc_info=exc,
                extra={"extra_fields": {"pipeline": self._context.name}},
            )


async def _pump(records: AsyncIterator[LineRecord], session: PartitionSession) -> None:
    try:
        async for record in records:
            session.on_record(record)
            if session.halted:
                break
    except Exception as exc:
        session.on_error(exc)
        return
    finally:
        aclose = getattr(records, "aclose", None)
        if aclose is not None:
            await aclose()

    if not session.halted:
        session.on_end()


async def partition(
    records: AsyncIterator[LineRecord],
    matcher: Matcher,
    handler: SectionHandler,
    *,
    boundary: Boundary,
    pipe_factory: Callable[[Section, PipelineContext], Any],
    context: PipelineContext,
) -> None:
    """Split ``records`` into sections and run ``handler`` on each.

    Returns once upstream has ended, the last section is closed and every
    awaitable returned by the handler has finished. Raises the first
    failure as soon as it happens; sections still running are left to
    finish on their own.
    """
    session = PartitionSession(
        compile_matcher(matcher), handler, boundary, pipe_factory, context
    )
    pump = asyncio.ensure_future(_pump(records, session))
    try:
        await session.done
    except asyncio.CancelledError:
        pump.cancel()
        raise
