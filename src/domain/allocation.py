from __future__ import annotations

import logging
import string
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from random import Random
from typing import Iterable, Protocol, Sequence

from pydantic import BaseModel, model_validator

from .fleet import (
    AllocationRule,
    BillingPeriod,
    CostCenter,
    CostCenterId,
    Crew,
    CrewId,
    Invoice,
    InvoiceLineItem,
    InvoiceStatus,
    Project,
    ProjectId,
    Tool,
    ensure_utc,
)

logger = logging.getLogger(__name__)

DAYS_PER_BILLING_MONTH = Decimal("30")
HIGH_VALUE_RATE_THRESHOLD = Decimal("1000")
CONSTRUCTION_SPLIT = Decimal("0.6")
ENGINEERING_SPLIT = Decimal("0.4")
GENERAL_ENTITY_ID = "GENERAL"

CATEGORY_ACCOUNTING_CODES: dict[str, str] = {
    "Safety": "SAFETY",
    "Drilling": "CONSTRUCTION",
    "Cutting": "CONSTRUCTION",
    "Layout": "ENGINEERING",
    "Measuring": "ENGINEERING",
}


class AllocationMethod(StrEnum):
    PROJECT = "project"
    COST_CENTER = "cost_center"
    CREW = "crew"
    MIXED = "mixed"


class AllocationTarget(StrEnum):
    PROJECT = "project"
    COST_CENTER = "cost_center"
    CREW = "crew"


class CostAllocationConfig(BaseModel):
    allocation_method: AllocationMethod = AllocationMethod.PROJECT
    include_taxes: bool = False
    tax_rate: Decimal = Decimal("0")
    currency: str = "USD"

    @model_validator(mode="after")
    def _validate_tax_rate(self) -> CostAllocationConfig:
        if self.tax_rate < 0:
            raise ValueError("tax_rate must be >= 0")
        return self


@dataclass(frozen=True)
class Allocation:
    """A slice of rental cost charged to a single billing entity."""

    target: AllocationTarget
    entity_id: str
    tools: tuple[Tool, ...]
    split_factor: Decimal = Decimal("1")


class InvoiceIdGenerator(Protocol):
    def __call__(self, prefix: str, entity_id: str, period: BillingPeriod) -> str: ...


class RandomInvoiceIdGenerator(InvoiceIdGenerator):
    """Builds ``{prefix}-{entity}-{YYYYMM}-{suffix}`` ids with a random base-36 suffix.

    The suffix only makes collisions unlikely; it is not meant to be unguessable.
    """

    ALPHABET = string.digits + string.ascii_uppercase

    def __init__(self, *, rng: Random | None = None, suffix_length: int = 6) -> None:
        if suffix_length <= 0:
            msg = "suffix_length must be > 0"
            raise ValueError(msg)
        self._rng = rng or Random()
        self.suffix_length = suffix_length

    def __call__(self, prefix: str, entity_id: str, period: BillingPeriod) -> str:
        suffix = "".join(self._rng.choice(self.ALPHABET) for _ in range(self.suffix_length))
        return f"{prefix}-{entity_id}-{period.year}{period.month:02d}-{suffix}"


class AllocationRuleEvaluator(Protocol):
    def evaluate(self, rules: Sequence[AllocationRule], tool: Tool) -> list[Allocation] | None:
        """Return allocations for ``tool`` or ``None`` to defer to the built-in split policy."""
        ...


class NoOpRuleEvaluator(AllocationRuleEvaluator):
    """Default evaluator: registered rules never override the built-in split policy."""

    def evaluate(self, rules: Sequence[AllocationRule], tool: Tool) -> list[Allocation] | None:
        return None


class CostAllocationEngine:
    """Distribute tool rental costs into invoices using the configured allocation method."""

    def __init__(
        self,
        config: CostAllocationConfig,
        *,
        id_generator: InvoiceIdGenerator | None = None,
        rule_evaluator: AllocationRuleEvaluator | None = None,
    ) -> None:
        self.config = config
        self._id_generator = id_generator or RandomInvoiceIdGenerator()
        self._rule_evaluator = rule_evaluator or NoOpRuleEvaluator()
        self._allocation_rules: list[AllocationRule] = []

    @property
    def allocation_rules(self) -> tuple[AllocationRule, ...]:
        return tuple(self._allocation_rules)

    def add_allocation_rule(self, rule: AllocationRule) -> None:
        self._allocation_rules.append(rule)

    def remove_allocation_rule(self, rule_id: str) -> None:
        self._allocation_rules = [rule for rule in self._allocation_rules if rule.rule_id != rule_id]

    def generate_invoices(
        self,
        tools: Iterable[Tool],
        projects: Iterable[Project],
        cost_centers: Iterable[CostCenter],
        crews: Iterable[Crew],
        billing_period: BillingPeriod,
    ) -> list[Invoice]:
        tool_list = list(tools)
        method = self.config.allocation_method

        if method == AllocationMethod.PROJECT:
            invoices = self._project_invoices(tool_list, list(projects), billing_period)
        elif method == AllocationMethod.COST_CENTER:
            invoices = self._cost_center_invoices(tool_list, list(cost_centers), billing_period)
        elif method == AllocationMethod.CREW:
            invoices = self._crew_invoices(tool_list, list(crews), billing_period)
        else:
            invoices = self._mixed_invoices(tool_list, billing_period)

        return [self._apply_taxes(invoice) for invoice in invoices]

    def _project_invoices(self, tools: list[Tool], projects: list[Project], period: BillingPeriod) -> list[Invoice]:
        known_projects = {project.project_id for project in projects}
        invoices: list[Invoice] = []
        for project_id, project_tools in self._group_tools_by_project(tools).items():
            if project_id not in known_projects:
                logger.debug("Skipping %d tool(s) assigned to unknown project %s", len(project_tools), project_id)
                continue
            invoices.append(self._build_invoice("PRJ", project_id, project_tools, period, project_id=project_id))
        return invoices

    def _cost_center_invoices(
        self, tools: list[Tool], cost_centers: list[CostCenter], period: BillingPeriod
    ) -> list[Invoice]:
        allocation: dict[CostCenterId, list[Tool]] = {cc.cost_center_id: [] for cc in cost_centers}
        for tool in tools:
            cost_center = self._find_cost_center(tool, cost_centers)
            if cost_center is None:
                logger.debug("No cost center available for tool %s", tool.tool_id)
                continue
            allocation[cost_center.cost_center_id].append(tool)

        return [
            self._build_invoice("CC", cost_center_id, allocated, period, cost_center=cost_center_id)
            for cost_center_id, allocated in allocation.items()
            if allocated
        ]

    def _crew_invoices(self, tools: list[Tool], crews: list[Crew], period: BillingPeriod) -> list[Invoice]:
        invoices: list[Invoice] = []
        for crew in crews:
            crew_tool_ids = set(crew.tools)
            crew_tools = [tool for tool in tools if tool.tool_id in crew_tool_ids]
            if not crew_tools:
                continue
            invoices.append(self._build_invoice("CREW", crew.crew_id, crew_tools, period, crew=crew.crew_id))
        return invoices

    def _mixed_invoices(self, tools: list[Tool], period: BillingPeriod) -> list[Invoice]:
        invoices: list[Invoice] = []
        for allocation in self._apply_allocation_rules(tools):
            invoices.append(
                self._build_invoice(
                    "MIX",
                    allocation.entity_id,
                    list(allocation.tools),
                    period,
                    split_factor=allocation.split_factor,
                    project_id=ProjectId(allocation.entity_id)
                    if allocation.target == AllocationTarget.PROJECT
                    else None,
                    cost_center=CostCenterId(allocation.entity_id)
                    if allocation.target == AllocationTarget.COST_CENTER
                    else None,
                    crew=CrewId(allocation.entity_id) if allocation.target == AllocationTarget.CREW else None,
                )
            )
        return invoices

    def _apply_allocation_rules(self, tools: list[Tool]) -> list[Allocation]:
        results: list[Allocation] = []
        rules = self.allocation_rules
        for tool in tools:
            evaluated = self._rule_evaluator.evaluate(rules, tool)
            if evaluated is not None:
                results.extend(evaluated)
                continue
            results.extend(self._default_split(tool))
        return results

    @staticmethod
    def _default_split(tool: Tool) -> list[Allocation]:
        if tool.monthly_rate > HIGH_VALUE_RATE_THRESHOLD:
            return [
                Allocation(AllocationTarget.COST_CENTER, "CONSTRUCTION", (tool,), CONSTRUCTION_SPLIT),
                Allocation(AllocationTarget.COST_CENTER, "ENGINEERING", (tool,), ENGINEERING_SPLIT),
            ]
        return [Allocation(AllocationTarget.PROJECT, tool.assigned_project_id or GENERAL_ENTITY_ID, (tool,))]

    @staticmethod
    def _group_tools_by_project(tools: list[Tool]) -> dict[ProjectId, list[Tool]]:
        grouped: dict[ProjectId, list[Tool]] = {}
        for tool in tools:
            if tool.assigned_project_id:
                grouped.setdefault(tool.assigned_project_id, []).append(tool)
        return grouped

    @staticmethod
    def _find_cost_center(tool: Tool, cost_centers: list[CostCenter]) -> CostCenter | None:
        target_code = CATEGORY_ACCOUNTING_CODES.get(tool.category, GENERAL_ENTITY_ID)
        for cost_center in cost_centers:
            if target_code in cost_center.accounting_code:
                return cost_center
        return cost_centers[0] if cost_centers else None

    def _build_invoice(
        self,
        prefix: str,
        entity_id: str,
        tools: list[Tool],
        period: BillingPeriod,
        *,
        split_factor: Decimal = Decimal("1"),
        project_id: ProjectId | None = None,
        cost_center: CostCenterId | None = None,
        crew: CrewId | None = None,
    ) -> Invoice:
        line_items = self._create_line_items(tools, period, split_factor)
        subtotal = sum((item.line_total for item in line_items), Decimal("0"))
        return Invoice(
            invoice_id=self._id_generator(prefix, entity_id, period),
            project_id=project_id,
            cost_center=cost_center,
            crew=crew,
            billing_period=period,
            line_items=line_items,
            subtotal=subtotal,
            taxes=Decimal("0"),
            total=subtotal,
            due_date=period.due_date,
            status=InvoiceStatus.DRAFT,
            currency=self.config.currency,
        )

    @staticmethod
    def _create_line_items(tools: list[Tool], period: BillingPeriod, split_factor: Decimal) -> list[InvoiceLineItem]:
        days = period.days_in_period
        items: list[InvoiceLineItem] = []
        for tool in tools:
            monthly_rate = tool.monthly_rate * split_factor
            daily_rate = monthly_rate / DAYS_PER_BILLING_MONTH
            items.append(
                InvoiceLineItem(
                    tool_id=tool.tool_id,
                    tool_name=tool.tool_name,
                    quantity=1,
                    monthly_rate=monthly_rate,
                    days_used=days,
                    line_total=daily_rate * days,
                    description=_line_description(tool, period),
                )
            )
        return items

    def _apply_taxes(self, invoice: Invoice) -> Invoice:
        taxes = invoice.subtotal * self.config.tax_rate if self.config.include_taxes else Decimal("0")
        return invoice.model_copy(update={"taxes": taxes, "total": invoice.subtotal + taxes})


def update_invoice_status(invoice: Invoice, status: InvoiceStatus, *, paid_date: datetime | None = None) -> Invoice:
    """Return a copy of ``invoice`` carrying the new status (and paid date, when given)."""
    update: dict[str, object] = {"status": status}
    if paid_date is not None:
        # model_copy skips field validators.
        update["paid_date"] = ensure_utc(paid_date)
    return invoice.model_copy(update=update)


def _line_description(tool: Tool, period: BillingPeriod) -> str:
    return f"{tool.tool_name} rental for {_short_date(period.start_date)} - {_short_date(period.end_date)}"


def _short_date(value: datetime) -> str:
    return f"{value.month}/{value.day}/{value.year}"


__all__ = [
    "Allocation",
    "AllocationMethod",
    "AllocationRuleEvaluator",
    "AllocationTarget",
    "CATEGORY_ACCOUNTING_CODES",
    "CostAllocationConfig",
    "CostAllocationEngine",
    "InvoiceIdGenerator",
    "NoOpRuleEvaluator",
    "RandomInvoiceIdGenerator",
    "update_invoice_status",
]
