"""Configuration schema definitions using Pydantic."""

from typing import Literal
from pydantic import BaseModel, Field, ConfigDict, field_validator


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(extra='forbid')

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Log level"
    )
    format: Literal["simple", "detailed", "json"] = Field(
        default="simple",
        description="Log format type"
    )
    file: str | None = Field(default=None, description="Optional log file path")

    @field_validator('level', mode='before')
    @classmethod
    def normalize_level(cls, v: str) -> str:
        """Normalize log level to uppercase for case-insensitive input."""
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator('format', mode='before')
    @classmethod
    def normalize_format(cls, v: str) -> str:
        """Normalize format to lowercase for case-insensitive input."""
        if isinstance(v, str):
            return v.lower()
        return v


class StreamConfig(BaseModel):
    """Byte stream reading and text decoding settings."""

    model_config = ConfigDict(extra='forbid')

    chunk_size: int = Field(
        default=64 * 1024,
        ge=1,
        description="Number of bytes requested per read from files and processes"
    )
    encoding: str = Field(
        default="utf-8",
        description="Encoding used when records are matched or rewritten as text"
    )
    errors: Literal["strict", "replace", "ignore", "surrogateescape"] = Field(
        default="replace",
        description="Codec error handler for decoding and encoding records"
    )

    @field_validator('encoding')
    @classmethod
    def validate_encoding(cls, v: str) -> str:
        """Reject encodings unknown to the codec registry."""
        import codecs

        try:
            codecs.lookup(v)
        except LookupError:
            raise ValueError(f"Unknown encoding: {v}")
        return v


class ProcessConfig(BaseModel):
    """External filter process settings."""

    model_config = ConfigDict(extra='forbid')

    check_returncode: bool = Field(
        default=False,
        description="Fail the downstream pipeline when a filter process exits non-zero"
    )


class LinePipeConfig(BaseModel):
    """Root configuration for linepipe."""

    model_config = ConfigDict(extra='forbid')

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    process: ProcessConfig = Field(default_factory=ProcessConfig)
