from __future__ import annotations

from typing import Iterable

from domain.reporting import CostCenterReport, InvoiceSummary

from .formatting import format_currency, format_invoice_status


def render_invoice_summary(summary: InvoiceSummary, *, currency: str = "USD") -> None:
    print("Invoice summary:")
    if summary.total_invoices == 0:
        print("  (no invoices)")
        return

    metrics = summary.payment_metrics
    rows = [
        ("Invoices", str(summary.total_invoices)),
        ("Revenue", format_currency(summary.total_revenue, currency)),
        ("Average invoice", format_currency(summary.average_invoice_value, currency)),
        ("Paid on time", str(metrics.on_time_payments)),
        ("Overdue amount", format_currency(metrics.overdue_amount, currency)),
        ("Avg days late", f"{metrics.average_days_to_payment:.1f}"),
    ]
    rows.extend((format_invoice_status(status), str(count)) for status, count in summary.status_breakdown.items())

    label_width = max(len(label) for label, _ in rows)
    value_width = max(len(value) for _, value in rows)
    print("\n".join(f"  {label:<{label_width}} {value:>{value_width}}" for label, value in rows))


def render_cost_center_report(reports: Iterable[CostCenterReport], *, currency: str = "USD") -> None:
    report_list = list(reports)
    print("Cost center totals:")
    if not report_list:
        print("  (no invoices)")
        return

    id_width = max(len("Cost center"), max(len(report.cost_center_id) for report in report_list))
    count_width = len("Invoices")
    total_width = max(len("Total"), max(len(format_currency(r.total_cost, currency)) for r in report_list))
    avg_width = max(len("Average"), max(len(format_currency(r.average_cost, currency)) for r in report_list))

    header = (
        f"{'Cost center':<{id_width}} "
        f"{'Invoices':>{count_width}} "
        f"{'Total':>{total_width}} "
        f"{'Average':>{avg_width}}"
    )
    lines = [header, "-" * len(header)]
    for report in report_list:
        lines.append(
            f"{report.cost_center_id:<{id_width}} "
            f"{report.invoice_count:>{count_width}} "
            f"{format_currency(report.total_cost, currency):>{total_width}} "
            f"{format_currency(report.average_cost, currency):>{avg_width}}"
        )
        for category, amount in sorted(report.tool_categories.items()):
            lines.append(f"  {category}: {format_currency(amount, currency)}")

    print("\n".join(lines))
