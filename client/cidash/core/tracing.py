"""
Tracing Context - context management for correlating log lines.

Every workflow operation (branch fetch, change detection, build submission,
registry monitoring) runs as a coroutine on one event loop. Python's
contextvars keep the fields isolated per task, so log lines emitted by a
connectivity monitor never pick up the repository of a concurrent detection.

Usage:
    # Set context at the start of an operation
    TracingContext.set(
        correlation_id="abc-123",
        repo_id="7",
        operation="detect_changes",
    )

    # Get context (automatically added to JSONFormatter logs)
    ctx = TracingContext.get()

    # Generate correlation_id prefix for manual logging
    prefix = TracingContext.get_log_prefix()  # "[corr=abc-123]"

    # Clear context at the end
    TracingContext.clear()
"""

import uuid
from contextvars import ContextVar
from typing import Dict

_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")
_repo_id: ContextVar[str] = ContextVar("repo_id", default="")
_registry_id: ContextVar[str] = ContextVar("registry_id", default="")
_operation: ContextVar[str] = ContextVar("operation", default="")


class TracingContext:
    """Per-task tracing context."""

    @staticmethod
    def set(
        correlation_id: str = "",
        repo_id: str = "",
        registry_id: str = "",
        operation: str = "",
    ) -> None:
        """Set tracing context for current execution."""
        if correlation_id:
            _correlation_id.set(correlation_id)
        if repo_id:
            _repo_id.set(repo_id)
        if registry_id:
            _registry_id.set(registry_id)
        if operation:
            _operation.set(operation)

    @staticmethod
    def get() -> Dict[str, str]:
        """Get current tracing context as dict."""
        return {
            "correlation_id": _correlation_id.get(),
            "repo_id": _repo_id.get(),
            "registry_id": _registry_id.get(),
            "operation": _operation.get(),
        }

    @staticmethod
    def get_or_create_correlation_id() -> str:
        """Get current correlation ID or create a new one."""
        corr_id = _correlation_id.get()
        if not corr_id:
            corr_id = str(uuid.uuid4())
            _correlation_id.set(corr_id)
        return corr_id

    @staticmethod
    def get_log_prefix() -> str:
        """Get a formatted prefix for manual logging."""
        corr_id = _correlation_id.get()
        if corr_id:
            return f"[corr={corr_id[:8]}]"
        return ""

    @staticmethod
    def clear() -> None:
        """Clear all tracing context."""
        _correlation_id.set("")
        _repo_id.set("")
        _registry_id.set("")
        _operation.set("")


def start_operation(operation: str, repo_id: str = "", registry_id: str = "") -> str:
    """Begin a traced operation with a fresh correlation ID and return it."""
    corr_id = str(uuid.uuid4())
    TracingContext.set(
        correlation_id=corr_id,
        repo_id=repo_id,
        registry_id=registry_id,
        operation=operation,
    )
    return corr_id
