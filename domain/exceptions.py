from typing import Any, Optional


class ChitFundError(Exception):
    """Base exception for billing engine failures."""

    code = "chitfund_error"

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(ChitFundError):
    """Enrollment, plan or invoice absent."""

    code = "not_found"

    def __init__(self, resource: str, identifier: Any = None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with id={identifier} not found"
        super().__init__(message=message, status_code=404, details={"resource": resource})


class ConfigurationError(ChitFundError):
    """Plan schedule missing or unusable."""

    code = "configuration_error"

    def __init__(self, message: str, plan_id: Optional[str] = None):
        details = {"plan_id": plan_id} if plan_id else {}
        super().__init__(message=message, status_code=409, details=details)


class ValidationError(ChitFundError):
    """Input rejected before any state mutation."""

    code = "validation_error"

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message=message, status_code=422, details=details)


class ConflictError(ChitFundError):
    """Duplicate invoice for the same enrollment and date."""

    code = "conflict"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message=message, status_code=409, details=details)
