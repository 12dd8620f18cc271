"""Pipeline stages for composable line processing."""

from .base import PipelineContext, PipelineStage, TransformStage
from .filters import PrePostStage

__all__ = ["PipelineContext", "PipelineStage", "TransformStage", "PrePostStage"]
