from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from domain.fleet import BillingPeriod, CostCenter, Crew, Project, Tool
from tests.helpers.invoice_ids import SequentialInvoiceIdGenerator


@pytest.fixture(scope="function")
def january_2024() -> BillingPeriod:
    return BillingPeriod(
        start_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
        end_date=datetime(2024, 1, 31, tzinfo=timezone.utc),
        year=2024,
        month=1,
    )


@pytest.fixture(scope="function")
def id_generator() -> SequentialInvoiceIdGenerator:
    return SequentialInvoiceIdGenerator()


@pytest.fixture(scope="function")
def projects() -> list[Project]:
    return [
        Project(project_id="501", project_name="Downtown Office Tower", contract_value=Decimal("250000")),
        Project(project_id="502", project_name="Riverside Warehouse", contract_value=Decimal("80000")),
    ]


@pytest.fixture(scope="function")
def cost_centers() -> list[CostCenter]:
    return [
        CostCenter(cost_center_id="CC-GEN", accounting_code="4000-GENERAL", department="Operations"),
        CostCenter(cost_center_id="CC-CON", accounting_code="4100-CONSTRUCTION", department="Construction"),
        CostCenter(cost_center_id="CC-ENG", accounting_code="4200-ENGINEERING", department="Engineering"),
    ]


@pytest.fixture(scope="function")
def tools() -> list[Tool]:
    return [
        Tool(
            tool_id="T1",
            tool_name="Hammer drill TE 30",
            category="Drilling",
            monthly_rate=Decimal("900"),
            assigned_project_id="501",
        ),
        Tool(
            tool_id="T2",
            tool_name="Diamond saw DSH 700",
            category="Cutting",
            monthly_rate=Decimal("1500"),
            assigned_project_id="502",
        ),
        Tool(
            tool_id="T3",
            tool_name="Line laser PM 30",
            category="Layout",
            monthly_rate=Decimal("300"),
            assigned_project_id="501",
        ),
        Tool(tool_id="T4", tool_name="Dust extractor VC 40", category="Dust Management", monthly_rate=Decimal("150")),
    ]


@pytest.fixture(scope="function")
def crews() -> list[Crew]:
    return [
        Crew(crew_id="C1", tools=["T1", "T3"]),
        Crew(crew_id="C2", tools=["T9"]),
        Crew(crew_id="C3", tools=["T2"]),
    ]
