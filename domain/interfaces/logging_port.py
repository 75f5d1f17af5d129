from typing_extensions import Protocol
from typing import Any, Optional


class BoundLogger(Protocol):
    """Protocol for a logger carrying billing context (customer, plan, step)."""

    def info(self, event: str, **kwargs: Any) -> None:
        """
        Log an info message.

        Args:
            event: Snake-case event name, e.g. "invoice_created"
            **kwargs: Additional context fields
        """
        ...

    def warning(self, event: str, **kwargs: Any) -> None:
        """Log a warning message."""
        ...

    def error(self, event: str, exc_info: bool = False, **kwargs: Any) -> None:
        """
        Log an error message.

        Args:
            event: Snake-case event name
            exc_info: Whether to include exception info
            **kwargs: Additional context fields
        """
        ...


class LoggingPort(Protocol):
    """Protocol for logging operations."""

    def bind(self, **kwargs: Any) -> BoundLogger:
        """
        Create a bound logger with context.

        Args:
            **kwargs: Context fields to bind to all log messages

        Returns:
            A bound logger with the specified context
        """
        ...


class NoOpLogger:
    """Logger used when no LoggingPort is injected (tests, scripts)."""

    def info(self, event: str, **kwargs: Any) -> None:
        pass

    def warning(self, event: str, **kwargs: Any) -> None:
        pass

    def error(self, event: str, exc_info: bool = False, **kwargs: Any) -> None:
        pass


def bind_or_noop(logging_port: Optional[LoggingPort], **kwargs: Any) -> BoundLogger:
    """Bind context on the given port, or fall back to a silent logger."""
    if logging_port is None:
        return NoOpLogger()
    return logging_port.bind(**kwargs)
