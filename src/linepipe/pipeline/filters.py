"""Shell-style filters built on the transform stage.

Text-based filters decode each record (terminator included) with the
pipeline's encoding, so patterns see exactly what the original line held.
"""

import re
from collections import deque
from typing import AsyncIterator, Callable, Optional, Pattern, Union

from ..framing import frame_lines
from ..records import LineRecord
from .base import PipelineContext, PipelineStage, TransformStage

PatternLike = Union[str, Pattern[str]]
Replacement = Union[str, Callable[[re.Match], str]]


def _compile(pattern: PatternLike) -> Pattern[str]:
    if isinstance(pattern, re.Pattern):
        return pattern
    if isinstance(pattern, str):
        return re.compile(pattern)
    raise TypeError(f"Expected str or compiled pattern, got {type(pattern).__name__}")


def _check_count(num: int, name: str) -> int:
    if not isinstance(num, int) or num < 0:
        raise ValueError(f"{name}() needs a non-negative count, got {num!r}")
    return num


def grep(pattern: PatternLike, context: PipelineContext) -> TransformStage:
    """Keep records whose text matches ``pattern`` anywhere."""
    regex = _compile(pattern)
    return TransformStage(
        lambda record: record if regex.search(context.decode(record)) else None,
        name="grep",
    )


def sed(
    pattern: PatternLike,
    replacement: Replacement,
    context: PipelineContext,
    count: int = 1,
) -> TransformStage:
    """Replace the first ``count`` occurrences of ``pattern`` in each record.

    A plain string is matched literally; pass a compiled pattern for a
    regular expression. ``replacement`` follows re.sub rules and
    ``count=0`` replaces every occurrence.
    """
    _check_count(count, "sed")
    regex = _compile(re.escape(pattern) if isinstance(pattern, str) else pattern)

    def substitute(record: LineRecord) -> LineRecord:
        text = regex.sub(replacement, context.decode(record), count=count)
        return LineRecord.from_bytes(context.encode(text))

    return TransformStage(substitute, name="sed")


def head(num: int) -> TransformStage:
    """First ``num`` records. Upstream is still read to its end."""
    remaining = _check_count(num, "head")

    def take(record: LineRecord) -> Optional[LineRecord]:
        nonlocal remaining
        if remaining > 0:
            remaining -= 1
            return record
        return None

    return TransformStage(take, name="head")


def tail(num: int) -> TransformStage:
    """Last ``num`` records."""
    window: deque = deque(maxlen=_check_count(num, "tail"))

    def keep(record: LineRecord) -> None:
        window.append(record)
        return None

    return TransformStage(keep, lambda: list(window), name="tail")


def sort() -> TransformStage:
    """All records ordered by their raw bytes. Buffers the whole input."""
    data = []

    def collect(record: LineRecord) -> None:
        data.append(record)
        return None

    return TransformStage(collect, lambda: sorted(data, key=bytes), name="sort")


def uniq() -> TransformStage:
    """Collapse runs of byte-identical adjacent records."""
    previous: Optional[LineRecord] = None

    def dedupe(record: LineRecord) -> Optional[LineRecord]:
        nonlocal previous
        if previous is None:
            previous = record
            return None
        if bytes(previous) == bytes(record):
            return None
        emit, previous = previous, record
        return emit

    return TransformStage(dedupe, lambda: [previous] if previous is not None else [], name="uniq")


def map_lines(fn: Callable[[str], Optional[str]], context: PipelineContext) -> TransformStage:
    """Apply ``fn`` to each line's text; None drops the line."""

    def apply(record: LineRecord) -> Optional[LineRecord]:
        result = fn(context.decode(record))
        if result is None:
            return None
        return LineRecord.from_bytes(context.encode(result))

    return TransformStage(apply, name="map")


class PrePostStage(PipelineStage):
    """Surround the content with a header and a footer, then re-frame.

    The header is only written once a first record arrives; the footer is
    always written. Neither needs to end with a newline: a header without
    one joins the first line.
    """

    def __init__(self, pre: Optional[Union[str, bytes]] = None, post: Optional[Union[str, bytes]] = None) -> None:
        super().__init__("prepost")
        self.pre = pre
        self.post = post

    async def process(
        self, records: AsyncIterator[LineRecord], context: PipelineContext
    ) -> AsyncIterator[LineRecord]:
        async def chunks():
            first = True
            async for record in records:
                if first:
                    first = False
                    if self.pre is not None:
                        yield self.pre
                yield bytes(record)
            if self.post is not None:
                yield self.post

        async for record in frame_lines(chunks(), context.stream.encoding):
            yield record
