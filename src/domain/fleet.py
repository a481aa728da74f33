from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import StrEnum
from typing import NewType

from pydantic import BaseModel, Field, field_validator, model_validator

ToolId = NewType("ToolId", str)
ProjectId = NewType("ProjectId", str)
CostCenterId = NewType("CostCenterId", str)
CrewId = NewType("CrewId", str)

PAYMENT_TERMS = timedelta(days=30)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so every stored timestamp is comparable."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class InvoiceStatus(StrEnum):
    DRAFT = "Draft"
    SENT = "Sent"
    PAID = "Paid"
    OVERDUE = "Overdue"
    DISPUTED = "Disputed"
    CANCELLED = "Cancelled"


class ProjectComplexity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Tool(BaseModel):
    tool_id: ToolId
    tool_name: str
    category: str
    monthly_rate: Decimal
    assigned_project_id: ProjectId | None = None

    @model_validator(mode="after")
    def _validate_rate(self) -> Tool:
        if self.monthly_rate < 0:
            raise ValueError("Tool.monthly_rate must be >= 0")
        return self


class Project(BaseModel):
    """A construction project; also serves as the profile for recommendation analysis.

    ``timeline`` is expressed in months.
    """

    project_id: ProjectId
    project_name: str
    contract_value: Decimal = Decimal("0")
    project_type: str = "commercial"
    complexity: ProjectComplexity = ProjectComplexity.MEDIUM
    timeline: Decimal = Decimal("0")
    labor_count: int = 0
    budget: Decimal = Decimal("0")


class CostCenter(BaseModel):
    cost_center_id: CostCenterId
    accounting_code: str
    department: str
    name: str | None = None


class Crew(BaseModel):
    crew_id: CrewId
    tools: list[ToolId] = Field(default_factory=list)
    crew_name: str | None = None


class BillingPeriod(BaseModel):
    start_date: datetime
    end_date: datetime
    year: int
    month: int

    @field_validator("start_date", "end_date")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @model_validator(mode="after")
    def _validate_range(self) -> BillingPeriod:
        if self.end_date < self.start_date:
            raise ValueError("BillingPeriod.end_date must not precede start_date")
        if not 1 <= self.month <= 12:
            raise ValueError("BillingPeriod.month must be within 1..12")
        return self

    @property
    def days_in_period(self) -> int:
        # Partial days count as a full billed day; same-day periods bill nothing.
        return math.ceil((self.end_date - self.start_date) / timedelta(days=1))

    @property
    def due_date(self) -> datetime:
        return self.end_date + PAYMENT_TERMS


class InvoiceLineItem(BaseModel):
    tool_id: ToolId
    tool_name: str
    quantity: int = 1
    monthly_rate: Decimal
    days_used: int
    line_total: Decimal
    description: str


class Invoice(BaseModel):
    invoice_id: str
    project_id: ProjectId | None = None
    cost_center: CostCenterId | None = None
    crew: CrewId | None = None
    billing_period: BillingPeriod
    line_items: list[InvoiceLineItem]
    subtotal: Decimal
    taxes: Decimal = Decimal("0")
    total: Decimal
    due_date: datetime
    paid_date: datetime | None = None
    status: InvoiceStatus = InvoiceStatus.DRAFT
    currency: str = "USD"

    @field_validator("due_date", "paid_date")
    @classmethod
    def _as_utc(cls, value: datetime | None) -> datetime | None:
        return None if value is None else ensure_utc(value)


class AllocationCriteria(BaseModel):
    tool_categories: list[str] | None = None
    project_types: list[str] | None = None
    cost_range: tuple[Decimal, Decimal] | None = None
    utilization_threshold: Decimal | None = None


class SplitMethodType(StrEnum):
    EQUAL = "equal"
    WEIGHTED = "weighted"
    USAGE_BASED = "usage_based"
    TIME_BASED = "time_based"


class SplitMethod(BaseModel):
    type: SplitMethodType
    weights: dict[str, Decimal] | None = None
    based_on_field: str | None = None


class AllocationRule(BaseModel):
    """A registered allocation rule.

    Rules are stored by the engine and handed to its rule evaluator; the
    built-in allocation policy does not interpret them.
    """

    rule_id: str
    rule_name: str
    criteria: AllocationCriteria = Field(default_factory=AllocationCriteria)
    split_method: SplitMethod = Field(default_factory=lambda: SplitMethod(type=SplitMethodType.EQUAL))
    is_active: bool = True
    effective_date: datetime
    expiration_date: datetime | None = None

    @field_validator("effective_date", "expiration_date")
    @classmethod
    def _as_utc(cls, value: datetime | None) -> datetime | None:
        return None if value is None else ensure_utc(value)

    @model_validator(mode="after")
    def _validate_dates(self) -> AllocationRule:
        if not self.rule_id:
            raise ValueError("AllocationRule.rule_id must be non-empty")
        if self.expiration_date is not None and self.expiration_date < self.effective_date:
            raise ValueError("AllocationRule.expiration_date must not precede effective_date")
        return self


__all__ = [
    "AllocationCriteria",
    "AllocationRule",
    "BillingPeriod",
    "CostCenter",
    "CostCenterId",
    "Crew",
    "CrewId",
    "Invoice",
    "InvoiceLineItem",
    "InvoiceStatus",
    "PAYMENT_TERMS",
    "Project",
    "ProjectComplexity",
    "ProjectId",
    "SplitMethod",
    "SplitMethodType",
    "Tool",
    "ToolId",
    "ensure_utc",
]
