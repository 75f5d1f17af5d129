from typing import Any, Optional, List
from datetime import date
from decimal import Decimal
from pydantic import BaseModel, Field


class RolloverRequest(BaseModel):
    as_of_date: date
    force: bool = False


class RolloverSummaryResponse(BaseModel):
    total: int
    updated: int
    skipped: int
    errors: int


class RolloverDetails(BaseModel):
    updated: List[dict[str, Any]]
    skipped: List[dict[str, Any]]
    errors: List[dict[str, Any]]


class RolloverResponse(BaseModel):
    as_of_date: date
    summary: RolloverSummaryResponse
    details: RolloverDetails
    cancelled: bool


class EnrollmentRef(BaseModel):
    customer_id: str
    plan_id: str


class ManualArrearRequest(EnrollmentRef):
    amount: Decimal = Field(..., ge=0)


class WaiveRequest(BaseModel):
    enrollment_ids: Optional[List[str]] = None
    clear_all: bool = False


class WaiveResponse(BaseModel):
    cleared_count: int
