from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import StrEnum
from typing import Iterable, Sequence

from pydantic import BaseModel, Field

from utils.formatting import format_whole_currency

from .fleet import Project, ProjectComplexity

SERVICE_ADVANTAGES: tuple[str, ...] = (
    "Unlimited repairs and maintenance included",
    "24/7 replacement guarantee if stolen or broken",
    "Latest technology updates throughout contract",
    "Professional training and support included",
)

RISK_MITIGATION: tuple[str, ...] = (
    "Eliminates equipment downtime through loaner program",
    "Protects against theft with 80% coverage",
    "Prevents budget overruns with fixed monthly costs",
    "Ensures compliance with latest safety standards",
)

FLEET_JUSTIFICATION: tuple[str, ...] = (
    "Fleet Management eliminates maintenance headaches",
    "Guaranteed service within 24 hours",
    "Access to latest fleet technology innovations",
)

SERVICE_GUARANTEE = "24-hour replacement guarantee"
RISK_MITIGATION_SUMMARY = (
    "Fleet Management provides comprehensive risk mitigation through service guarantees, "
    "theft coverage, and predictable costs"
)
HYBRID_STRATEGY = "Strong candidate for hybrid Fleet + ToD strategy"
FULL_FLEET_STRATEGY = "Full Fleet Management recommended for this project"

TOD_CATEGORIES = ("cutting", "demolition", "specialty")
PROJECT_SPECIFIC_CATEGORIES = ("drilling", "fastening")
PRECISION_CATEGORIES = ("measuring", "layout")
CONTINUOUS_USE_CATEGORIES = ("safety", "dust")
POWER_TOOL_CATEGORIES = ("drilling", "cutting", "fastening", "demolition")
CRITICAL_CATEGORIES = ("drilling", "cutting", "safety")
HEAVY_DUTY_PROJECT_TYPES = frozenset({"commercial", "industrial", "infrastructure"})

OWNERSHIP_SAVINGS_MULTIPLIER = Decimal("2.5")
PAYBACK_MONTHLY_SHARE = Decimal("0.3")
TOD_DURATION_SHARE = Decimal("0.6")
TOD_SAVINGS_RATE = Decimal("0.25")
HYBRID_SAVINGS_THRESHOLD = Decimal("5000")
LONG_TIMELINE_MONTHS = Decimal("18")
LARGE_TEAM_SIZE = 25
BUDGET_SHARE_THRESHOLD = Decimal("0.15")


class TodSuitability(StrEnum):
    EXCELLENT = "excellent"
    GOOD = "good"
    LIMITED = "limited"
    NOT_SUITABLE = "not_suitable"


class ArchetypeMatch(StrEnum):
    ESSENTIAL = "essential"
    RECOMMENDED = "recommended"
    SITUATIONAL = "situational"


class RiskLevel(StrEnum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class RecommendationPricing(BaseModel):
    standard_price: Decimal
    fleet_monthly_price: Decimal
    fleet_upfront_cost: Decimal
    currency: str = "USD"
    price_source: str = "estimated"


class ToolRecommendation(BaseModel):
    name: str
    category: str
    quantity: int = 1
    monthly_cost: Decimal
    total_cost: Decimal
    rental_duration: Decimal
    justification: list[str] = Field(default_factory=list)
    id: str | None = None
    model: str = ""
    description: str = ""
    product_url: str = ""
    specifications: list[str] = Field(default_factory=list)
    pricing: RecommendationPricing | None = None


class EnhancedToolRecommendation(ToolRecommendation):
    service_advantages: list[str]
    risk_mitigation: list[str]
    tod_suitability: TodSuitability
    archetype_match: ArchetypeMatch


@dataclass
class QuickInsights:
    total_fleet_cost: Decimal
    monthly_payment: Decimal
    estimated_savings: int
    payback_period: int
    tool_count: int
    critical_tools: int
    risk_reduction: str
    service_guarantee: str = SERVICE_GUARANTEE
    key_recommendations: list[str] = field(default_factory=list)


@dataclass
class ToolsOnDemandAnalysis:
    candidates: list[ToolRecommendation]
    potential_savings: Decimal
    recommendation: str


@dataclass
class RiskAssessment:
    risk_level: RiskLevel
    risk_factors: list[str]
    mitigation: str = RISK_MITIGATION_SUMMARY


@dataclass
class EnhancedAnalysis:
    enhanced_tools: list[EnhancedToolRecommendation]
    insights: QuickInsights
    tod_analysis: ToolsOnDemandAnalysis
    risk_assessment: RiskAssessment


def classify_tod_suitability(category: str) -> TodSuitability:
    lowered = category.lower()
    if _matches_any(lowered, TOD_CATEGORIES):
        return TodSuitability.EXCELLENT
    if _matches_any(lowered, PROJECT_SPECIFIC_CATEGORIES):
        return TodSuitability.GOOD
    if _matches_any(lowered, PRECISION_CATEGORIES):
        return TodSuitability.LIMITED
    if _matches_any(lowered, CONTINUOUS_USE_CATEGORIES):
        return TodSuitability.NOT_SUITABLE
    return TodSuitability.GOOD


def classify_archetype_match(project: Project, category: str) -> ArchetypeMatch:
    lowered = category.lower()
    is_power_tool = _matches_any(lowered, POWER_TOOL_CATEGORIES)
    if project.project_type.lower() in HEAVY_DUTY_PROJECT_TYPES and is_power_tool:
        return ArchetypeMatch.ESSENTIAL
    if is_power_tool or "safety" in lowered:
        return ArchetypeMatch.RECOMMENDED
    return ArchetypeMatch.SITUATIONAL


def enhance_recommendations(
    project: Project, recommendations: Iterable[ToolRecommendation]
) -> list[EnhancedToolRecommendation]:
    enhanced: list[EnhancedToolRecommendation] = []
    for tool in recommendations:
        fields = tool.model_dump()
        fields["justification"] = [*tool.justification, *FLEET_JUSTIFICATION]
        enhanced.append(
            EnhancedToolRecommendation(
                **fields,
                service_advantages=list(SERVICE_ADVANTAGES),
                risk_mitigation=list(RISK_MITIGATION),
                tod_suitability=classify_tod_suitability(tool.category),
                archetype_match=classify_archetype_match(project, tool.category),
            )
        )
    return enhanced


def generate_quick_insights(project: Project, recommendations: Sequence[ToolRecommendation]) -> QuickInsights:
    total_cost = _total_cost(recommendations)
    monthly_cost = sum((tool.monthly_cost for tool in recommendations), Decimal("0"))
    estimated_savings = _round_half_up(total_cost * OWNERSHIP_SAVINGS_MULTIPLIER)

    payback_base = monthly_cost * PAYBACK_MONTHLY_SHARE
    payback_period = _round_half_up(total_cost / payback_base) if payback_base else 0

    complexity = project.complexity
    return QuickInsights(
        total_fleet_cost=total_cost,
        monthly_payment=monthly_cost,
        estimated_savings=estimated_savings,
        payback_period=payback_period,
        tool_count=len(recommendations),
        critical_tools=sum(1 for tool in recommendations if _matches_any(tool.category.lower(), CRITICAL_CATEGORIES)),
        risk_reduction=_risk_reduction_label(complexity),
        key_recommendations=[
            f"{len(recommendations)} tools recommended for {project.project_type} project",
            f"{format_whole_currency(monthly_cost)} monthly Fleet Management cost",
            f"Estimated {format_whole_currency(Decimal(estimated_savings))} savings vs ownership",
            f"{complexity} complexity project benefits from professional service guarantees",
        ],
    )


def analyze_tools_on_demand(recommendations: Iterable[ToolRecommendation], project: Project) -> ToolsOnDemandAnalysis:
    duration_limit = project.timeline * TOD_DURATION_SHARE
    candidates = [
        tool
        for tool in recommendations
        if _matches_any(tool.category.lower(), TOD_CATEGORIES) and tool.rental_duration < duration_limit
    ]
    potential_savings = sum((tool.total_cost * TOD_SAVINGS_RATE for tool in candidates), Decimal("0"))
    return ToolsOnDemandAnalysis(
        candidates=candidates,
        potential_savings=potential_savings,
        recommendation=HYBRID_STRATEGY if potential_savings > HYBRID_SAVINGS_THRESHOLD else FULL_FLEET_STRATEGY,
    )


def assess_project_risks(project: Project, recommendations: Iterable[ToolRecommendation]) -> RiskAssessment:
    risks: list[str] = []
    if project.complexity == ProjectComplexity.HIGH:
        risks.append("High project complexity increases equipment reliability requirements")
    if project.timeline > LONG_TIMELINE_MONTHS:
        risks.append("Extended project timeline benefits from Fleet Management service guarantees")
    if project.labor_count > LARGE_TEAM_SIZE:
        risks.append("Large team size requires consistent equipment availability")
    if _total_cost(recommendations) > project.budget * BUDGET_SHARE_THRESHOLD:
        risks.append("High equipment costs relative to budget - Fleet Management provides cost predictability")

    if len(risks) > 2:
        level = RiskLevel.HIGH
    elif risks:
        level = RiskLevel.MEDIUM
    else:
        level = RiskLevel.LOW
    return RiskAssessment(risk_level=level, risk_factors=risks)


def get_enhanced_analysis(project: Project, recommendations: Sequence[ToolRecommendation]) -> EnhancedAnalysis:
    return EnhancedAnalysis(
        enhanced_tools=enhance_recommendations(project, recommendations),
        insights=generate_quick_insights(project, recommendations),
        tod_analysis=analyze_tools_on_demand(recommendations, project),
        risk_assessment=assess_project_risks(project, recommendations),
    )


def _risk_reduction_label(complexity: ProjectComplexity) -> str:
    if complexity == ProjectComplexity.HIGH:
        return "Significant"
    if complexity == ProjectComplexity.MEDIUM:
        return "Moderate"
    return "Standard"


def _total_cost(recommendations: Iterable[ToolRecommendation]) -> Decimal:
    return sum((tool.total_cost for tool in recommendations), Decimal("0"))


def _matches_any(category: str, needles: Iterable[str]) -> bool:
    return any(needle in category for needle in needles)


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


__all__ = [
    "ArchetypeMatch",
    "EnhancedAnalysis",
    "EnhancedToolRecommendation",
    "QuickInsights",
    "RecommendationPricing",
    "RiskAssessment",
    "RiskLevel",
    "TodSuitability",
    "ToolRecommendation",
    "ToolsOnDemandAnalysis",
    "analyze_tools_on_demand",
    "assess_project_risks",
    "classify_archetype_match",
    "classify_tod_suitability",
    "enhance_recommendations",
    "generate_quick_insights",
    "get_enhanced_analysis",
]
