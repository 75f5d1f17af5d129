from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from domain.exceptions import ChitFundError
from infrastructure.logging.structlog_logs import logger


async def chitfund_error_handler(request: Request, exc: ChitFundError) -> JSONResponse:
    """Render domain errors as {"error", "message", "details"}."""
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, error=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "message": exc.message, "details": exc.details},
    )


def _format_validation_errors(errors: list[dict]) -> list[dict]:
    details = []
    for error in errors:
        loc = error.get("loc", ())
        # Drop the top-level "body"/"query" for cleaner field paths
        if loc and loc[0] in ("body", "query", "path"):
            loc = loc[1:]
        details.append({
            "field": ".".join(str(part) for part in loc) if loc else None,
            "message": error.get("msg", "Invalid value"),
        })
    return details


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "error": "validation_error",
            "message": "Validation error",
            "details": {"errors": _format_validation_errors(exc.errors())},
        },
    )
