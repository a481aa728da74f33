from __future__ import annotations

import re
from datetime import datetime, timezone
from decimal import Decimal
from random import Random
from typing import Sequence

import pytest

from domain.allocation import (
    Allocation,
    AllocationMethod,
    AllocationTarget,
    CostAllocationConfig,
    CostAllocationEngine,
    RandomInvoiceIdGenerator,
    update_invoice_status,
)
from domain.fleet import AllocationRule, BillingPeriod, CostCenter, Crew, InvoiceStatus, Project, Tool
from domain.reporting import InvoiceReportingEngine
from tests.helpers.invoice_ids import SequentialInvoiceIdGenerator


def _engine(
    method: AllocationMethod,
    id_generator: SequentialInvoiceIdGenerator,
    **kwargs: object,
) -> CostAllocationEngine:
    return CostAllocationEngine(
        CostAllocationConfig(allocation_method=method, **kwargs),  # type: ignore[arg-type]
        id_generator=id_generator,
    )


def test_project_allocation_groups_assigned_tools(
    tools: list[Tool],
    projects: list[Project],
    january_2024: BillingPeriod,
    id_generator: SequentialInvoiceIdGenerator,
) -> None:
    engine = _engine(AllocationMethod.PROJECT, id_generator)

    invoices = engine.generate_invoices(tools, projects, [], [], january_2024)

    assert [invoice.project_id for invoice in invoices] == ["501", "502"]
    assert [invoice.invoice_id for invoice in invoices] == ["PRJ-501-202401-000001", "PRJ-502-202401-000002"]
    assert [item.tool_id for item in invoices[0].line_items] == ["T1", "T3"]
    assert invoices[0].subtotal == Decimal("1200")
    assert invoices[1].subtotal == Decimal("1500")
    assert all(invoice.cost_center is None and invoice.crew is None for invoice in invoices)

    billed = {item.tool_id for invoice in invoices for item in invoice.line_items}
    assert billed == {tool.tool_id for tool in tools if tool.assigned_project_id}


def test_project_allocation_drops_tools_for_unknown_projects(
    tools: list[Tool],
    january_2024: BillingPeriod,
    id_generator: SequentialInvoiceIdGenerator,
) -> None:
    engine = _engine(AllocationMethod.PROJECT, id_generator)
    only_501 = [Project(project_id="501", project_name="Downtown Office Tower")]

    invoices = engine.generate_invoices(tools, only_501, [], [], january_2024)

    assert len(invoices) == 1
    assert invoices[0].project_id == "501"


def test_january_scenario_with_ten_percent_tax(
    projects: list[Project],
    january_2024: BillingPeriod,
    id_generator: SequentialInvoiceIdGenerator,
) -> None:
    engine = _engine(AllocationMethod.PROJECT, id_generator, include_taxes=True, tax_rate=Decimal("0.10"))
    tool = Tool(
        tool_id="T1",
        tool_name="Hammer drill TE 30",
        category="Drilling",
        monthly_rate=Decimal("900"),
        assigned_project_id="501",
    )

    [invoice] = engine.generate_invoices([tool], projects, [], [], january_2024)

    [line] = invoice.line_items
    assert line.days_used == 30
    assert line.quantity == 1
    assert line.line_total == Decimal("900")
    assert invoice.subtotal == Decimal("900")
    assert invoice.taxes == Decimal("90")
    assert invoice.total == Decimal("990")
    assert invoice.due_date == datetime(2024, 3, 1, tzinfo=timezone.utc)
    assert invoice.status == InvoiceStatus.DRAFT
    assert line.description == "Hammer drill TE 30 rental for 1/1/2024 - 1/31/2024"


def test_taxes_are_zero_when_disabled(
    tools: list[Tool],
    projects: list[Project],
    january_2024: BillingPeriod,
    id_generator: SequentialInvoiceIdGenerator,
) -> None:
    engine = _engine(AllocationMethod.PROJECT, id_generator, include_taxes=False, tax_rate=Decimal("0.2"))

    invoices = engine.generate_invoices(tools, projects, [], [], january_2024)

    for invoice in invoices:
        assert invoice.taxes == Decimal("0")
        assert invoice.total == invoice.subtotal + invoice.taxes


def test_cost_center_allocation_uses_category_codes(
    tools: list[Tool],
    cost_centers: list[CostCenter],
    january_2024: BillingPeriod,
    id_generator: SequentialInvoiceIdGenerator,
) -> None:
    engine = _engine(AllocationMethod.COST_CENTER, id_generator)

    invoices = engine.generate_invoices(tools, [], cost_centers, [], january_2024)

    by_center = {invoice.cost_center: [item.tool_id for item in invoice.line_items] for invoice in invoices}
    assert list(by_center) == ["CC-GEN", "CC-CON", "CC-ENG"]
    assert by_center["CC-CON"] == ["T1", "T2"]
    assert by_center["CC-ENG"] == ["T3"]
    assert by_center["CC-GEN"] == ["T4"]
    assert invoices[0].invoice_id.startswith("CC-CC-GEN-202401-")


def test_cost_center_allocation_falls_back_to_first_cost_center(
    tools: list[Tool],
    january_2024: BillingPeriod,
    id_generator: SequentialInvoiceIdGenerator,
) -> None:
    engine = _engine(AllocationMethod.COST_CENTER, id_generator)
    centers = [
        CostCenter(cost_center_id="CC-OPS", accounting_code="5000-OPS", department="Operations"),
        CostCenter(cost_center_id="CC-CON", accounting_code="4100-CONSTRUCTION", department="Construction"),
    ]

    invoices = engine.generate_invoices(tools, [], centers, [], january_2024)

    by_center = {invoice.cost_center: [item.tool_id for item in invoice.line_items] for invoice in invoices}
    assert by_center == {"CC-OPS": ["T3", "T4"], "CC-CON": ["T1", "T2"]}


def test_cost_center_allocation_without_cost_centers_produces_nothing(
    tools: list[Tool],
    january_2024: BillingPeriod,
    id_generator: SequentialInvoiceIdGenerator,
) -> None:
    engine = _engine(AllocationMethod.COST_CENTER, id_generator)

    assert engine.generate_invoices(tools, [], [], [], january_2024) == []


def test_crew_allocation_skips_crews_without_tools(
    tools: list[Tool],
    crews: list[Crew],
    january_2024: BillingPeriod,
    id_generator: SequentialInvoiceIdGenerator,
) -> None:
    engine = _engine(AllocationMethod.CREW, id_generator)

    invoices = engine.generate_invoices(tools, [], [], crews, january_2024)

    assert [invoice.crew for invoice in invoices] == ["C1", "C3"]
    assert [item.tool_id for item in invoices[0].line_items] == ["T1", "T3"]
    assert invoices[1].invoice_id == "CREW-C3-202401-000002"


def test_mixed_allocation_splits_high_value_tools(
    tools: list[Tool],
    january_2024: BillingPeriod,
    id_generator: SequentialInvoiceIdGenerator,
) -> None:
    engine = _engine(AllocationMethod.MIXED, id_generator)

    invoices = engine.generate_invoices(tools, [], [], [], january_2024)

    targets = [(invoice.project_id, invoice.cost_center) for invoice in invoices]
    assert targets == [
        ("501", None),
        (None, "CONSTRUCTION"),
        (None, "ENGINEERING"),
        ("501", None),
        ("GENERAL", None),
    ]
    construction, engineering = invoices[1], invoices[2]
    assert construction.line_items[0].monthly_rate == Decimal("900")
    assert engineering.line_items[0].monthly_rate == Decimal("600")
    assert construction.subtotal + engineering.subtotal == Decimal("1500")
    assert all(invoice.invoice_id.startswith("MIX-") for invoice in invoices)


def test_mixed_allocation_keeps_threshold_rate_whole(
    january_2024: BillingPeriod,
    id_generator: SequentialInvoiceIdGenerator,
) -> None:
    engine = _engine(AllocationMethod.MIXED, id_generator)
    tool = Tool(tool_id="T5", tool_name="Combihammer", category="Demolition", monthly_rate=Decimal("1000"))

    [invoice] = engine.generate_invoices([tool], [], [], [], january_2024)

    assert invoice.project_id == "GENERAL"
    assert invoice.line_items[0].monthly_rate == Decimal("1000")


def test_line_total_formula_with_partial_days(id_generator: SequentialInvoiceIdGenerator) -> None:
    period = BillingPeriod(
        start_date=datetime(2024, 2, 1, tzinfo=timezone.utc),
        end_date=datetime(2024, 2, 11, 10, tzinfo=timezone.utc),
        year=2024,
        month=2,
    )
    engine = _engine(AllocationMethod.MIXED, id_generator)
    tool = Tool(tool_id="T6", tool_name="Core rig", category="Drilling", monthly_rate=Decimal("1234.56"))

    invoices = engine.generate_invoices([tool], [], [], [], period)

    assert period.days_in_period == 11
    for invoice, split in zip(invoices, (Decimal("0.6"), Decimal("0.4"))):
        [line] = invoice.line_items
        assert line.line_total == (Decimal("1234.56") * split / Decimal("30")) * 11


def test_same_day_period_bills_nothing(id_generator: SequentialInvoiceIdGenerator, projects: list[Project]) -> None:
    moment = datetime(2024, 5, 5, tzinfo=timezone.utc)
    period = BillingPeriod(start_date=moment, end_date=moment, year=2024, month=5)
    engine = _engine(AllocationMethod.PROJECT, id_generator)
    tool = Tool(
        tool_id="T1",
        tool_name="Drill",
        category="Drilling",
        monthly_rate=Decimal("900"),
        assigned_project_id="501",
    )

    [invoice] = engine.generate_invoices([tool], projects, [], [], period)

    assert invoice.line_items[0].days_used == 0
    assert invoice.total == Decimal("0")


def test_allocation_rules_are_stored_and_removed(id_generator: SequentialInvoiceIdGenerator) -> None:
    engine = _engine(AllocationMethod.MIXED, id_generator)
    effective = datetime(2024, 1, 1, tzinfo=timezone.utc)
    engine.add_allocation_rule(AllocationRule(rule_id="R1", rule_name="Saws", effective_date=effective))
    engine.add_allocation_rule(AllocationRule(rule_id="R2", rule_name="Lasers", effective_date=effective))

    engine.remove_allocation_rule("R1")
    engine.remove_allocation_rule("missing")

    assert [rule.rule_id for rule in engine.allocation_rules] == ["R2"]


def test_registered_rules_do_not_change_default_policy(
    tools: list[Tool],
    january_2024: BillingPeriod,
) -> None:
    effective = datetime(2024, 1, 1, tzinfo=timezone.utc)
    plain = _engine(AllocationMethod.MIXED, SequentialInvoiceIdGenerator())
    with_rules = _engine(AllocationMethod.MIXED, SequentialInvoiceIdGenerator())
    with_rules.add_allocation_rule(AllocationRule(rule_id="R1", rule_name="Everything", effective_date=effective))

    expected = plain.generate_invoices(tools, [], [], [], january_2024)
    actual = with_rules.generate_invoices(tools, [], [], [], january_2024)

    assert [inv.model_dump() for inv in actual] == [inv.model_dump() for inv in expected]


class _CrewRuleEvaluator:
    def __init__(self) -> None:
        self.seen_rules: list[tuple[str, ...]] = []

    def evaluate(self, rules: Sequence[AllocationRule], tool: Tool) -> list[Allocation] | None:
        self.seen_rules.append(tuple(rule.rule_id for rule in rules))
        if tool.category != "Layout":
            return None
        return [Allocation(AllocationTarget.CREW, "SURVEY", (tool,), Decimal("0.5"))]


def test_custom_rule_evaluator_overrides_default_split(
    tools: list[Tool],
    january_2024: BillingPeriod,
    id_generator: SequentialInvoiceIdGenerator,
) -> None:
    evaluator = _CrewRuleEvaluator()
    engine = CostAllocationEngine(
        CostAllocationConfig(allocation_method=AllocationMethod.MIXED),
        id_generator=id_generator,
        rule_evaluator=evaluator,
    )
    engine.add_allocation_rule(
        AllocationRule(rule_id="R1", rule_name="Survey", effective_date=datetime(2024, 1, 1, tzinfo=timezone.utc))
    )

    invoices = engine.generate_invoices(tools, [], [], [], january_2024)

    crew_invoices = [invoice for invoice in invoices if invoice.crew == "SURVEY"]
    assert len(crew_invoices) == 1
    assert crew_invoices[0].subtotal == Decimal("150")
    assert evaluator.seen_rules == [("R1",)] * len(tools)


def test_random_invoice_ids_follow_format(january_2024: BillingPeriod) -> None:
    generator = RandomInvoiceIdGenerator(rng=Random(7))

    invoice_id = generator("PRJ", "501", january_2024)

    assert re.fullmatch(r"PRJ-501-202401-[0-9A-Z]{6}", invoice_id)
    assert RandomInvoiceIdGenerator(rng=Random(7))("PRJ", "501", january_2024) == invoice_id


def test_update_invoice_status_records_payment(
    tools: list[Tool],
    projects: list[Project],
    january_2024: BillingPeriod,
    id_generator: SequentialInvoiceIdGenerator,
) -> None:
    engine = _engine(AllocationMethod.PROJECT, id_generator)
    [invoice, _] = engine.generate_invoices(tools, projects, [], [], january_2024)
    paid_at = datetime(2024, 2, 20, tzinfo=timezone.utc)

    paid = update_invoice_status(invoice, InvoiceStatus.PAID, paid_date=paid_at)

    assert paid.status == InvoiceStatus.PAID
    assert paid.paid_date == paid_at
    assert invoice.status == InvoiceStatus.DRAFT


def test_naive_paid_date_is_stored_as_utc_and_reportable(
    tools: list[Tool],
    projects: list[Project],
    january_2024: BillingPeriod,
    id_generator: SequentialInvoiceIdGenerator,
) -> None:
    engine = _engine(AllocationMethod.PROJECT, id_generator)
    [invoice, _] = engine.generate_invoices(tools, projects, [], [], january_2024)

    paid = update_invoice_status(invoice, InvoiceStatus.PAID, paid_date=datetime(2024, 2, 5))
    summary = InvoiceReportingEngine.generate_invoice_summary([paid])

    assert paid.paid_date == datetime(2024, 2, 5, tzinfo=timezone.utc)
    assert summary.payment_metrics.on_time_payments == 1
    assert summary.payment_metrics.average_days_to_payment == Decimal("0")


def test_config_rejects_negative_tax_rate() -> None:
    with pytest.raises(ValueError):
        CostAllocationConfig(tax_rate=Decimal("-0.1"))
