from __future__ import annotations

import argparse
import logging
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Sequence

from pydantic import BaseModel, ConfigDict, Field

from config import config
from domain.allocation import AllocationMethod, CostAllocationConfig, CostAllocationEngine
from domain.fleet import BillingPeriod, CostCenter, Crew, Project, Tool
from domain.reporting import InvoiceReportingEngine
from utils.invoice_report import render_cost_center_report, render_invoice_summary


class FleetData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tools: list[Tool] = Field(default_factory=list)
    projects: list[Project] = Field(default_factory=list)
    cost_centers: list[CostCenter] = Field(default_factory=list, alias="costCenters")
    crews: list[Crew] = Field(default_factory=list)


def load_fleet(path: Path) -> FleetData:
    return FleetData.model_validate_json(path.read_text(encoding="utf-8"))


def run(
    fleet_path: Path,
    *,
    start: datetime,
    end: datetime,
    method: AllocationMethod,
    tax_rate: Decimal,
    currency: str,
) -> None:
    fleet = load_fleet(fleet_path)
    period = BillingPeriod(start_date=start, end_date=end, year=start.year, month=start.month)
    engine = CostAllocationEngine(
        CostAllocationConfig(
            allocation_method=method,
            include_taxes=tax_rate > 0,
            tax_rate=tax_rate,
            currency=currency,
        )
    )

    invoices = engine.generate_invoices(fleet.tools, fleet.projects, fleet.cost_centers, fleet.crews, period)

    print(f"Generated {len(invoices)} invoices from {len(fleet.tools)} tools ({method} allocation)")
    for invoice in invoices:
        print(f"  {invoice.invoice_id}: {len(invoice.line_items)} line items, total {invoice.total:.2f}")
    render_invoice_summary(InvoiceReportingEngine.generate_invoice_summary(invoices), currency=currency)
    categories = {tool.tool_id: tool.category for tool in fleet.tools}
    render_cost_center_report(
        InvoiceReportingEngine.generate_cost_center_report(invoices, tool_categories=categories),
        currency=currency,
    )


def main(argv: Sequence[str] | None = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    parser = argparse.ArgumentParser(description="Allocate fleet rental costs into invoices for a billing period.")
    parser.add_argument("--fleet", type=Path, default=Path("data/fleet.json"))
    parser.add_argument("--start", type=datetime.fromisoformat, required=True, help="Period start (ISO8601).")
    parser.add_argument("--end", type=datetime.fromisoformat, required=True, help="Period end (ISO8601).")
    parser.add_argument(
        "--method",
        type=AllocationMethod,
        choices=list(AllocationMethod),
        default=AllocationMethod.PROJECT,
    )
    parser.add_argument("--tax-rate", type=Decimal, default=config().default_tax_rate)
    parser.add_argument("--currency", default="USD")
    args = parser.parse_args(argv)
    run(
        args.fleet,
        start=args.start,
        end=args.end,
        method=args.method,
        tax_rate=args.tax_rate,
        currency=args.currency,
    )


if __name__ == "__main__":
    main()
