"""linepipe - chainable asyncio line filters with stream partitioning."""

from .errors import (
    LinePipeError,
    ConfigurationError,
    PipelineError,
    PipelineConsumedError,
    ProcessExitError,
)
from .framing import LineFramer, frame_lines
from .pipeline import PipelineContext, PipelineStage, TransformStage
from .records import LineRecord
from .sinks import BinaryIODestination, Destination, FileDestination, StreamDestination
from .textpipe import TextPipe

__version__ = "0.1.0"

attach = TextPipe.attach
cat = TextPipe.cat

__all__ = [
    "TextPipe",
    "attach",
    "cat",
    "LineRecord",
    "LineFramer",
    "frame_lines",
    "PipelineContext",
    "PipelineStage",
    "TransformStage",
    "Destination",
    "FileDestination",
    "BinaryIODestination",
    "StreamDestination",
    "LinePipeError",
    "ConfigurationError",
    "PipelineError",
    "PipelineConsumedError",
    "ProcessExitError",
]
