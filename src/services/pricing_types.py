from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class PriceRequest:
    product_id: str
    quantity: int = 1


@dataclass(frozen=True)
class PricingResult:
    """Per-product pricing outcome; failures are reported through ``success``/``error``."""

    product_id: str
    standard_price: Decimal
    fleet_monthly_price: Decimal
    fleet_upfront_cost: Decimal
    currency: str
    success: bool
    error: str | None = None

    @classmethod
    def failure(cls, product_id: str, error: str, *, currency: str = "USD") -> PricingResult:
        return cls(
            product_id=product_id,
            standard_price=Decimal("0"),
            fleet_monthly_price=Decimal("0"),
            fleet_upfront_cost=Decimal("0"),
            currency=currency,
            success=False,
            error=error,
        )


__all__ = ["PriceRequest", "PricingResult"]
