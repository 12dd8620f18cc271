"""Tests for the error hierarchy."""

import pytest

from linepipe.errors import (
    ConfigurationError,
    LinePipeError,
    PipelineConsumedError,
    PipelineError,
    ProcessExitError,
)


class TestErrorInheritance:
    """Test error class hierarchy."""

    @pytest.mark.parametrize(
        "error_class",
        [ConfigurationError, PipelineError, PipelineConsumedError, ProcessExitError],
    )
    def test_all_errors_inherit_from_base(self, error_class):
        """Test that every linepipe error can be caught as LinePipeError."""
        assert issubclass(error_class, LinePipeError)

    def test_pipeline_errors(self):
        """Test the pipeline error branch."""
        assert issubclass(PipelineConsumedError, PipelineError)
        assert issubclass(ProcessExitError, PipelineError)
        assert not issubclass(ConfigurationError, PipelineError)


class TestErrorContext:
    """Test error message and context."""

    def test_message_and_context(self):
        """Test that keyword arguments become context."""
        error = ConfigurationError("Config file not found", path="/tmp/x.toml")
        assert str(error) == "Config file not found"
        assert error.message == "Config file not found"
        assert error.context == {"path": "/tmp/x.toml"}

    def test_context_defaults_to_empty(self):
        """Test an error without context."""
        assert PipelineError("failed").context == {}

    def test_process_exit_error(self):
        """Test the process exit details."""
        error = ProcessExitError("sort", 2)
        assert error.command == "sort"
        assert error.returncode == 2
        assert error.context == {"command": "sort", "returncode": 2}
        assert "sort" in str(error) and "2" in str(error)
