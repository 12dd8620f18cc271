"""Base classes for pipeline stages."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import AsyncIterator, Callable, Iterable, Optional

from ..config.schema import StreamConfig
from ..logging_config import get_logger
from ..records import LineRecord

TransformFn = Callable[[LineRecord], Optional[LineRecord]]
FlushFn = Callable[[], Iterable[LineRecord]]


@dataclass
class PipelineContext:
    """Context shared by the stages of one pipeline."""

    name: str = "pipeline"
    stream: StreamConfig = field(default_factory=StreamConfig)

    def child(self, suffix: str) -> "PipelineContext":
        """Context for a pipeline derived from this one."""
        return replace(self, name=f"{self.name}.{suffix}")

    def decode(self, record: LineRecord) -> str:
        return record.text(self.stream.encoding, self.stream.errors)

    def encode(self, text: str) -> bytes:
        return text.encode(self.stream.encoding, self.stream.errors)


class PipelineStage(ABC):
    """Base class for single-input, single-output record stages."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.logger = get_logger(f"{__name__}.{name}")

    @abstractmethod
    def process(
        self, records: AsyncIterator[LineRecord], context: PipelineContext
    ) -> AsyncIterator[LineRecord]:
        """
        Consume upstream records and yield output records.

        Implementations are async generators so that records stream
        through one at a time.
        """

    async def execute(
        self, records: AsyncIterator[LineRecord], context: PipelineContext
    ) -> AsyncIterator[LineRecord]:
        """
        Run this stage over an upstream iterator.

        Handles logging; errors propagate unchanged to the consumer.
        """
        self.logger.debug(
            f"Starting stage: {self.name}",
            extra={"extra_fields": {"pipeline": context.name, "stage": self.name}},
        )

        emitted = 0
        try:
            async for output in self.process(records, context):
                emitted += 1
                yield output

        except Exception as e:
            self.logger.error(
                f"Stage failed: {self.name}",
                exc_info=True,
                extra={
                    "extra_fields": {
                        "pipeline": context.name,
                        "stage": self.name,
                        "error_type": type(e).__name__,
                    }
                },
            )
            raise

        self.logger.debug(
            f"Stage completed: {self.name}",
            extra={
                "extra_fields": {
                    "pipeline": context.name,
                    "stage": self.name,
                    "records_emitted": emitted,
                }
            },
        )


class TransformStage(PipelineStage):
    """Per-record transform with an optional end-of-stream flush.

    ``transform`` returns the output record, or None to drop the input.
    ``flush`` returns the records to emit after upstream ends.
    """

    def __init__(
        self,
        transform: TransformFn,
        flush: Optional[FlushFn] = None,
        name: str = "transform",
    ) -> None:
        super().__init__(name)
        self.transform = transform
        self.flush = flush

    async def process(
        self, records: AsyncIterator[LineRecord], context: PipelineContext
    ) -> AsyncIterator[LineRecord]:
        async for record in records:
            result = self.transform(record)
            if result is not None:
                yield result

        if self.flush is not None:
            for record in self.flush():
                yield record
