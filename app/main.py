import os
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from dotenv import load_dotenv

load_dotenv()

from infrastructure.metrics.metrics import metrics_endpoint
from infrastructure.logging.structlog_logs import bind_request_context
from app.routers.v1 import router
from app.exception_handlers import chitfund_error_handler, request_validation_handler
from domain.exceptions import ChitFundError

# Import database models to ensure they're registered
from infrastructure.db.models import Base, PlanModel, EnrollmentModel, InvoiceModel  # noqa: F401


@asynccontextmanager
async def lifespan(app: FastAPI):
    if os.getenv("DB_CREATE_TABLES", "false").lower() == "true":
        from infrastructure.db.database import create_tables
        await create_tables()
    yield


app = FastAPI(title="chitfund-billing", lifespan=lifespan)

app.add_exception_handler(ChitFundError, chitfund_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)


@app.middleware("http")
async def request_context(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    bind_request_context(request_id=request_id, path=request.url.path)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.get("/metrics")
async def metrics():
    return metrics_endpoint()

@app.get("/health")
async def health():
    return {"status": "ok", "message": "chitfund-billing is running"}

app.include_router(router)
