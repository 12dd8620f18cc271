"""Chainable pipeline handle."""

import asyncio
import inspect
import io
import os
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    List,
    Optional,
    Sequence,
    TypeVar,
    Union,
)

from .errors import PipelineConsumedError
from .framing import frame_lines
from .partition import Matcher, Section, SectionHandler, compile_matcher, every, partition
from .pipeline import filters
from .pipeline.base import FlushFn, PipelineContext, PipelineStage, TransformFn, TransformStage
from .process import spawn_filter
from .records import LineRecord
from .sinks import BinaryIODestination, Destination, Framing, write_out
from .sources import PathOrFd, iter_chunks, read_file
from .tee import Tee

T = TypeVar("T")


class TextPipe:
    """Handle on a stream of line records.

    Every chaining method consumes this handle and returns a new one (or
    an awaitable for terminal operations). A consumed handle cannot be
    used again; branch with :meth:`tee` to feed several consumers.

    Example::

        await (
            TextPipe.cat("input.txt")
            .grep(r"foo")
            .sed("bar", "zot")
            .out("output.txt")
        )
    """

    def __init__(
        self,
        records: AsyncIterator[LineRecord],
        context: Optional[PipelineContext] = None,
    ) -> None:
        self._records = records
        self.context = context or PipelineContext()
        self._consumed = False

    # Sources

    @classmethod
    def attach(cls, source: Any, context: Optional[PipelineContext] = None) -> "TextPipe":
        """Frame a byte source (chunks of any size) into a pipeline."""
        context = context or PipelineContext()
        chunks = iter_chunks(source, context.stream.chunk_size)
        return cls(frame_lines(chunks, context.stream.encoding), context)

    @classmethod
    def cat(cls, path: PathOrFd, context: Optional[PipelineContext] = None) -> "TextPipe":
        """Pipeline over the contents of a file."""
        context = context or PipelineContext(name=os.fspath(path) if not isinstance(path, int) else f"fd{path}")
        return cls.attach(read_file(path, context.stream.chunk_size), context)

    # Plumbing

    def _take(self) -> AsyncIterator[LineRecord]:
        if self._consumed:
            raise PipelineConsumedError(
                "Pipeline handle has already been consumed", pipeline=self.context.name
            )
        self._consumed = True
        return self._records

    def _derive(self, records: AsyncIterator[LineRecord], suffix: str) -> "TextPipe":
        return type(self)(records, self.context.child(suffix))

    def __aiter__(self) -> AsyncIterator[LineRecord]:
        return self._take().__aiter__()

    def pipe(self, stage: PipelineStage) -> "TextPipe":
        """Run the records through ``stage``."""
        return self._derive(stage.execute(self._take(), self.context), stage.name)

    def transform(self, fn: TransformFn, flush: Optional[FlushFn] = None) -> "TextPipe":
        """Map each record with ``fn`` (None drops it), then emit ``flush()``."""
        return self.pipe(TransformStage(fn, flush))

    # Filters

    def grep(self, pattern) -> "TextPipe":
        return self.pipe(filters.grep(pattern, self.context))

    def sed(self, pattern, replacement, count: int = 1) -> "TextPipe":
        """Replace the first ``count`` matches per line (0 replaces all)."""
        return self.pipe(filters.sed(pattern, replacement, self.context, count))

    def head(self, num: int) -> "TextPipe":
        return self.pipe(filters.head(num))

    def tail(self, num: int) -> "TextPipe":
        return self.pipe(filters.tail(num))

    def sort(self) -> "TextPipe":
        return self.pipe(filters.sort())

    def uniq(self) -> "TextPipe":
        return self.pipe(filters.uniq())

    def map(self, fn: Callable[[str], Optional[str]]) -> "TextPipe":
        """Apply ``fn`` to each line's text (terminator included)."""
        return self.pipe(filters.map_lines(fn, self.context))

    def prepost(self, pre: Framing = None, post: Framing = None) -> "TextPipe":
        return self.pipe(filters.PrePostStage(pre, post))

    def pre(self, pre: Framing = None) -> "TextPipe":
        return self.prepost(pre, None)

    def post(self, post: Framing = None) -> "TextPipe":
        return self.prepost(None, post)

    def spawn(self, command: str, args: Sequence[str] = (), *, check: bool = False, **options: Any) -> "TextPipe":
        """Run the records through an external command.

        Launch failures (e.g. a missing executable) surface as the error of
        the returned pipeline, never from this call.
        """
        records = spawn_filter(
            self._take(),
            command,
            args,
            chunk_size=self.context.stream.chunk_size,
            encoding=self.context.stream.encoding,
            check=check,
            **options,
        )
        return self._derive(records, os.path.basename(command))

    # Branching

    def tee(self, fn: Callable[["TextPipe"], Any]) -> "TextPipe":
        """Hand a copy of the stream to ``fn`` and return another copy.

        If ``fn`` returns an awaitable it runs as a task; the returned
        pipeline awaits it after its last record, so a failure in the
        branch fails the main line too.
        """
        side, main = Tee(self._take(), 2).branches()
        result = fn(self._derive(side, "tee"))
        task = asyncio.ensure_future(result) if inspect.isawaitable(result) else None

        async def joined() -> AsyncIterator[LineRecord]:
            try:
                async for record in main:
                    yield record
            except BaseException:
                if task is not None and not task.done():
                    task.cancel()
                raise
            if task is not None:
                await task

        return self._derive(joined(), "main")

    def apply(self, fn: Callable[[AsyncIterator[LineRecord]], T]) -> T:
        """Call ``fn`` with the raw record iterator and return its result."""
        return fn(self._take())

    # Partitioning

    def _section_pipe(self, section: Section, context: PipelineContext) -> "TextPipe":
        return type(self)(section, context)

    def divide_from(self, matcher: Matcher, handler: SectionHandler) -> Awaitable[None]:
        """Split into sections, each starting at a line where ``matcher`` holds.

        ``handler(pipe, index)`` is called once per section. Callable
        matchers get ``(text, count)`` with ``count`` the number of lines
        already in the current section.
        """
        matcher = compile_matcher(matcher)
        return partition(
            self._take(), matcher, handler,
            boundary="from", pipe_factory=self._section_pipe, context=self.context,
        )

    def divide_to(self, matcher: Matcher, handler: SectionHandler) -> Awaitable[None]:
        """Split into sections, each ending at a line where ``matcher`` holds.

        Callable matchers get ``(text, count)`` with ``count`` including the
        line being tested.
        """
        matcher = compile_matcher(matcher)
        return partition(
            self._take(), matcher, handler,
            boundary="to", pipe_factory=self._section_pipe, context=self.context,
        )

    def divide(self, num: int, handler: SectionHandler) -> Awaitable[None]:
        """Split into sections of ``num`` lines (the last may be shorter)."""
        return self.divide_from(every(num), handler)

    # Sinks

    def out(
        self,
        destination: Union[Destination, str, "os.PathLike[str]"],
        pre: Framing = None,
        post: Framing = None,
    ) -> Awaitable[None]:
        """Write the stream to a file path or a Destination."""
        return write_out(
            self._take(), destination, pre=pre, post=post, encoding=self.context.stream.encoding
        )

    async def read(self) -> bytes:
        """Collect the whole stream into bytes."""
        buffer = io.BytesIO()
        await self.out(BinaryIODestination(buffer))
        return buffer.getvalue()

    async def lines(self) -> List[str]:
        """Collect the whole stream as decoded lines, terminators included."""
        return [self.context.decode(record) async for record in self]
