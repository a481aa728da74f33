from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, Mapping

from .fleet import Invoice, InvoiceStatus, Project

UNASSIGNED_COST_CENTER = "Unassigned"
UNRESOLVED_CATEGORY = "General"


@dataclass
class PaymentMetrics:
    on_time_payments: int = 0
    overdue_amount: Decimal = Decimal("0")
    average_days_to_payment: Decimal = Decimal("0")


@dataclass
class InvoiceSummary:
    total_invoices: int
    total_revenue: Decimal
    average_invoice_value: Decimal
    status_breakdown: dict[InvoiceStatus, int] = field(default_factory=dict)
    payment_metrics: PaymentMetrics = field(default_factory=PaymentMetrics)


@dataclass
class CostCenterReport:
    cost_center_id: str
    total_cost: Decimal = Decimal("0")
    invoice_count: int = 0
    average_cost: Decimal = Decimal("0")
    tool_categories: dict[str, Decimal] = field(default_factory=dict)


@dataclass
class ProjectProfitability:
    project_id: str
    project_name: str
    contract_value: Decimal
    tool_costs: Decimal
    profit: Decimal
    margin_percent: Decimal
    roi: Decimal


class InvoiceReportingEngine:
    """Aggregations over generated invoices. All methods are pure."""

    @staticmethod
    def generate_invoice_summary(invoices: Iterable[Invoice]) -> InvoiceSummary:
        invoice_list = list(invoices)
        total_revenue = sum((invoice.total for invoice in invoice_list), Decimal("0"))

        status_breakdown: dict[InvoiceStatus, int] = {}
        for invoice in invoice_list:
            status_breakdown[invoice.status] = status_breakdown.get(invoice.status, 0) + 1

        paid = [inv for inv in invoice_list if inv.status == InvoiceStatus.PAID and inv.paid_date is not None]
        on_time = sum(1 for inv in paid if inv.paid_date is not None and inv.paid_date <= inv.due_date)
        overdue_amount = sum(
            (inv.total for inv in invoice_list if inv.status == InvoiceStatus.OVERDUE),
            Decimal("0"),
        )

        average_days = Decimal("0")
        if paid:
            late_days = sum(max(0, _whole_days_between(inv.due_date, inv.paid_date)) for inv in paid if inv.paid_date)
            average_days = Decimal(late_days) / Decimal(len(paid))

        return InvoiceSummary(
            total_invoices=len(invoice_list),
            total_revenue=total_revenue,
            average_invoice_value=_safe_divide(total_revenue, Decimal(len(invoice_list))),
            status_breakdown=status_breakdown,
            payment_metrics=PaymentMetrics(
                on_time_payments=on_time,
                overdue_amount=overdue_amount,
                average_days_to_payment=average_days,
            ),
        )

    @staticmethod
    def generate_cost_center_report(
        invoices: Iterable[Invoice],
        *,
        tool_categories: Mapping[str, str] | None = None,
    ) -> list[CostCenterReport]:
        """Group invoice totals by cost center.

        ``tool_categories`` maps tool ids to categories for the per-category
        breakdown; line items it cannot resolve land under ``"General"``.
        """
        directory = tool_categories or {}
        reports: dict[str, CostCenterReport] = {}

        for invoice in invoices:
            key = invoice.cost_center or UNASSIGNED_COST_CENTER
            report = reports.setdefault(key, CostCenterReport(cost_center_id=key))
            report.total_cost += invoice.total
            report.invoice_count += 1

            for item in invoice.line_items:
                category = directory.get(item.tool_id, UNRESOLVED_CATEGORY)
                report.tool_categories[category] = report.tool_categories.get(category, Decimal("0")) + item.line_total

        for report in reports.values():
            report.average_cost = _safe_divide(report.total_cost, Decimal(report.invoice_count))

        return list(reports.values())


def calculate_project_profitability(project: Project, invoices: Iterable[Invoice]) -> ProjectProfitability:
    tool_costs = sum((invoice.total for invoice in invoices), Decimal("0"))
    profit = project.contract_value - tool_costs
    return ProjectProfitability(
        project_id=project.project_id,
        project_name=project.project_name,
        contract_value=project.contract_value,
        tool_costs=tool_costs,
        profit=profit,
        margin_percent=_safe_divide(profit, project.contract_value) * 100,
        roi=_safe_divide(profit, tool_costs) * 100,
    )


def _whole_days_between(start: datetime, end: datetime) -> int:
    return (end - start) // timedelta(days=1)


def _safe_divide(numerator: Decimal, denominator: Decimal) -> Decimal:
    if denominator == 0:
        return Decimal("0")
    return numerator / denominator


__all__ = [
    "CostCenterReport",
    "InvoiceReportingEngine",
    "InvoiceSummary",
    "PaymentMetrics",
    "ProjectProfitability",
    "calculate_project_profitability",
]
