"""Tests for pipeline stages and shell-style filters."""

import re
from typing import AsyncIterator

import pytest

from linepipe import TextPipe
from linepipe.config.schema import StreamConfig
from linepipe.pipeline import PipelineContext, PipelineStage, TransformStage
from linepipe.records import LineRecord


async def records_of(*lines: bytes) -> AsyncIterator[LineRecord]:
    for line in lines:
        yield LineRecord.from_bytes(line)


async def collect(iterator) -> list:
    return [bytes(record) async for record in iterator]


class UpperStage(PipelineStage):
    """Test stage that upper-cases each line."""

    def __init__(self):
        super().__init__("upper")

    async def process(self, records, context) -> AsyncIterator[LineRecord]:
        async for record in records:
            yield LineRecord(record.body.upper(), record.terminator)


class FailingStage(PipelineStage):
    """Test stage that fails after the first record."""

    def __init__(self):
        super().__init__("failing")

    async def process(self, records, context) -> AsyncIterator[LineRecord]:
        async for record in records:
            yield record
            raise RuntimeError("stage broke")


class TestStages:
    """Tests for PipelineStage and TransformStage."""

    @pytest.mark.asyncio
    async def test_custom_stage(self):
        """Test a subclass streaming records through execute."""
        context = PipelineContext(name="test")
        out = UpperStage().execute(records_of(b"a\n", b"b"), context)
        assert await collect(out) == [b"A\n", b"B"]

    @pytest.mark.asyncio
    async def test_stage_error_propagates_unchanged(self):
        """Test that execute re-raises the stage's own exception."""
        context = PipelineContext(name="test")
        out = FailingStage().execute(records_of(b"a\n", b"b\n"), context)
        received = []
        with pytest.raises(RuntimeError, match="stage broke"):
            async for record in out:
                received.append(record)
        assert received == [LineRecord(b"a", b"\n")]

    @pytest.mark.asyncio
    async def test_transform_drops_none_and_flushes(self):
        """Test that None drops a record and flush output follows the stream."""
        stage = TransformStage(
            lambda r: r if r.body != b"skip" else None,
            lambda: [LineRecord(b"end", b"\n")],
        )
        out = stage.execute(records_of(b"a\n", b"skip\n", b"b\n"), PipelineContext())
        assert await collect(out) == [b"a\n", b"b\n", b"end\n"]

    @pytest.mark.asyncio
    async def test_custom_stage_on_pipe(self):
        """Test plugging a custom stage into a TextPipe chain."""
        pipe = TextPipe.attach([b"x\ny\n"]).pipe(UpperStage())
        assert await pipe.read() == b"X\nY\n"

    def test_context_child_names(self):
        """Test derived context naming."""
        context = PipelineContext(name="input.txt", stream=StreamConfig(encoding="latin-1"))
        child = context.child("grep")
        assert child.name == "input.txt.grep"
        assert child.stream.encoding == "latin-1"


class TestFilters:
    """Tests for grep, sed, head, tail, sort, uniq and map."""

    @pytest.mark.asyncio
    async def test_grep(self):
        """Test that grep keeps matching lines with their terminators."""
        pipe = TextPipe.attach([b"apple\r\nbanana\ncherry"]).grep(r"an|rr")
        assert await pipe.read() == b"banana\ncherry"

    @pytest.mark.asyncio
    async def test_grep_compiled_pattern(self):
        """Test grep with a precompiled, case-insensitive pattern."""
        pipe = TextPipe.attach([b"Foo\nbar\nFOO\n"]).grep(re.compile("foo", re.I))
        assert await pipe.lines() == ["Foo\n", "FOO\n"]

    @pytest.mark.asyncio
    async def test_sed_literal_first_occurrence(self):
        """Test that a string pattern is literal and replaced once per line."""
        pipe = TextPipe.attach([b"a.b.c\nabc\n"]).sed(".", "-")
        assert await pipe.read() == b"a-b.c\nabc\n"

    @pytest.mark.asyncio
    async def test_sed_regex_keeps_terminator(self):
        """Test regex substitution leaving CRLF terminators intact."""
        pipe = TextPipe.attach([b"foo1\r\nfoo22\r\n"]).sed(re.compile(r"\d+"), "N")
        assert await pipe.read() == b"fooN\r\nfooN\r\n"

    @pytest.mark.asyncio
    async def test_sed_count(self):
        """Test replacing every match with count=0 and a bounded number otherwise."""
        data = b"a-b-c-d\n"
        assert await TextPipe.attach([data]).sed("-", "+", count=0).read() == b"a+b+c+d\n"
        assert await TextPipe.attach([data]).sed(re.compile("-"), "+", count=2).read() == b"a+b+c-d\n"

    def test_sed_rejects_negative_count(self):
        """Test that a negative replacement count is refused."""
        with pytest.raises(ValueError):
            TextPipe.attach([b""]).sed("a", "b", count=-1)

    @pytest.mark.asyncio
    async def test_head(self):
        """Test head with fewer, equal and more lines than available."""
        data = b"1\n2\n3\n"
        assert await TextPipe.attach([data]).head(2).read() == b"1\n2\n"
        assert await TextPipe.attach([data]).head(0).read() == b""
        assert await TextPipe.attach([data]).head(10).read() == data

    @pytest.mark.asyncio
    async def test_tail(self):
        """Test tail keeps the last lines in order."""
        data = b"1\n2\n3\n4"
        assert await TextPipe.attach([data]).tail(2).read() == b"3\n4"
        assert await TextPipe.attach([data]).tail(0).read() == b""

    def test_negative_counts_rejected(self):
        """Test that head and tail reject negative counts."""
        with pytest.raises(ValueError):
            TextPipe.attach([b""]).head(-1)
        with pytest.raises(ValueError):
            TextPipe.attach([b""]).tail(-1)

    @pytest.mark.asyncio
    async def test_sort_and_uniq(self):
        """Test bytewise sort followed by adjacent de-duplication."""
        pipe = TextPipe.attach([b"b\na\nb\nB\na\n"]).sort().uniq()
        assert await pipe.read() == b"B\na\nb\n"

    @pytest.mark.asyncio
    async def test_uniq_only_adjacent(self):
        """Test that uniq keeps non-adjacent duplicates."""
        pipe = TextPipe.attach([b"x\nx\ny\nx\n"]).uniq()
        assert await pipe.read() == b"x\ny\nx\n"

    @pytest.mark.asyncio
    async def test_map(self):
        """Test map rewriting and dropping lines."""
        pipe = TextPipe.attach([b"one\ntwo\nthree\n"]).map(
            lambda text: None if text.startswith("two") else text.upper()
        )
        assert await pipe.read() == b"ONE\nTHREE\n"

    @pytest.mark.asyncio
    async def test_transform_on_pipe(self):
        """Test a record-level transform with flush."""
        count = 0

        def counting(record):
            nonlocal count
            count += 1
            return record

        pipe = TextPipe.attach([b"a\nb\n"]).transform(
            counting, lambda: [LineRecord.from_text(f"{count}\n")]
        )
        assert await pipe.read() == b"a\nb\n2\n"


class TestPrePost:
    """Tests for the header/footer stage."""

    @pytest.mark.asyncio
    async def test_prepost_reframes(self):
        """Test that header and footer are joined into the line structure."""
        pipe = TextPipe.attach([b"a\nb\n"]).prepost("<<", ">>\n")
        assert await pipe.lines() == ["<<a\n", "b\n", ">>\n"]

    @pytest.mark.asyncio
    async def test_pre_skipped_for_empty_stream(self):
        """Test that only the footer is written for an empty stream."""
        assert await TextPipe.attach([]).prepost("head\n", "foot\n").read() == b"foot\n"

    @pytest.mark.asyncio
    async def test_pre_and_post_shorthands(self):
        """Test the single-sided shorthands."""
        assert await TextPipe.attach([b"x\n"]).pre("# ").read() == b"# x\n"
        assert await TextPipe.attach([b"x\n"]).post(b"--\n").read() == b"x\n--\n"
