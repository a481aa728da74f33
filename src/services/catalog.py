from __future__ import annotations

import json
from decimal import Decimal
from pathlib import Path
from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class CatalogPricing(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    standard_price: Decimal = Field(default=Decimal("0"), alias="standardPrice")
    fleet_monthly_price: Decimal = Field(default=Decimal("0"), alias="fleetMonthlyPrice")
    fleet_upfront_cost: Decimal = Field(default=Decimal("0"), alias="fleetUpfrontCost")
    currency: str = "USD"

    @field_validator("standard_price", "fleet_monthly_price", "fleet_upfront_cost", mode="before")
    @classmethod
    def _missing_price_is_zero(cls, value: object) -> object:
        return Decimal("0") if value in (None, "") else value

    @field_validator("currency", mode="before")
    @classmethod
    def _missing_currency_is_usd(cls, value: object) -> object:
        return "USD" if value in (None, "") else value


class CatalogProduct(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)

    name: str | None = None
    sku: str | None = None
    tag_sku: str | None = None
    api_product_ids: list[str] = Field(default_factory=list, alias="apiProductIds")
    pricing: CatalogPricing | None = None


class CatalogCategory(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str | None = None
    products: list[CatalogProduct] = Field(default_factory=list)


_CATALOG_ADAPTER = TypeAdapter(list[CatalogCategory])


class ProductCatalog:
    """Product lookup by API alias or SKU; later catalog entries win on duplicate keys."""

    def __init__(self, categories: Iterable[CatalogCategory]) -> None:
        self.categories = list(categories)
        self._lookup: dict[str, CatalogProduct] = {}
        for category in self.categories:
            for product in category.products:
                for alias in product.api_product_ids:
                    self._lookup[str(alias)] = product
                if product.sku:
                    self._lookup[str(product.sku)] = product

    def find(self, product_id: str) -> CatalogProduct | None:
        return self._lookup.get(str(product_id))

    def __len__(self) -> int:
        return len(self._lookup)


def product_id_for(product: CatalogProduct) -> str | None:
    """Return the identifier the pricing API expects for a catalog product."""
    return product.sku or product.tag_sku or None


def load_catalog(path: Path) -> ProductCatalog:
    with path.open("r", encoding="utf-8") as handle:
        raw = json.load(handle)
    return ProductCatalog(_CATALOG_ADAPTER.validate_python(raw))


__all__ = [
    "CatalogCategory",
    "CatalogPricing",
    "CatalogProduct",
    "ProductCatalog",
    "load_catalog",
    "product_id_for",
]
