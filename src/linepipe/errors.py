"""Application-wide error definitions.

Errors coming from sources, destinations, external processes and section
handlers are never wrapped in these classes; they reach the caller as the
original exception object.
"""

from typing import Any, Dict


class LinePipeError(Exception):
    """Base exception for all linepipe errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context


class ConfigurationError(LinePipeError):
    """Configuration is invalid or missing."""
    pass


class PipelineError(LinePipeError):
    """Pipeline construction or execution failed."""
    pass


class PipelineConsumedError(PipelineError):
    """A pipeline handle was used after a chaining operation consumed it."""
    pass


class ProcessExitError(PipelineError):
    """External filter process exited with a non-zero status."""

    def __init__(self, command: str, returncode: int) -> None:
        super().__init__(
            f"Command '{command}' exited with status {returncode}",
            command=command,
            returncode=returncode,
        )
        self.command = command
        self.returncode = returncode
