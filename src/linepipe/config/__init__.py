"""Configuration management."""

from .loader import ConfigLoader
from .schema import LinePipeConfig, LoggingConfig, StreamConfig, ProcessConfig

__all__ = ["ConfigLoader", "LinePipeConfig", "LoggingConfig", "StreamConfig", "ProcessConfig"]
