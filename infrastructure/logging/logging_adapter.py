"""
Logging adapter that implements LoggingPort protocol.

Billing services bind customer/plan context once and log snake_case events
through it; this adapter backs that with structlog's JSON output.
"""
from typing import Any
from domain.interfaces import LoggingPort, BoundLogger
from infrastructure.logging.structlog_logs import logger as structlog_logger


class StructlogBoundLogger:
    """Wraps a structlog bound logger behind the BoundLogger protocol."""
    
    def __init__(self, bound_logger):
        self._logger = bound_logger
    
    def info(self, event: str, **kwargs: Any) -> None:
        self._logger.info(event, **kwargs)
    
    def warning(self, event: str, **kwargs: Any) -> None:
        self._logger.warning(event, **kwargs)
    
    def error(self, event: str, exc_info: bool = False, **kwargs: Any) -> None:
        self._logger.error(event, exc_info=exc_info, **kwargs)


class LoggingAdapter(LoggingPort):
    """
    Structured JSON logging for the billing engine.

    Example:
        log = LoggingAdapter().bind(customer_id="C1", plan_id="P1", step="invoice_preview")
        log.info("invoice_preview_computed", due_number=2)
    """
    
    def bind(self, **kwargs: Any) -> BoundLogger:
        """
        Create a bound logger with context.
        
        Args:
            **kwargs: Context fields to bind to all log messages
            
        Returns:
            A bound logger with the specified context
        """
        return StructlogBoundLogger(structlog_logger.bind(**kwargs))
