from __future__ import annotations

import logging
import time
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Sequence

import requests
from requests import PreparedRequest, Response
from requests.auth import AuthBase

from config import config

from .catalog import ProductCatalog
from .pricing_types import PriceRequest, PricingResult

logger = logging.getLogger(__name__)

DEFAULT_QUANTITY = 10

STREET_PRICES_QUERY = """
query StreetProductsPrices($filter: PricesFilterInput!, $localization: LocalizationInput!, $isFleetPriceEnabled: Boolean!, $isSubscriptionPriceEnabled: Boolean!) {
  streetPrices(filter: $filter) {
    ...ProductPrice
    __typename
  }
}

fragment ProductPrice on Price {
  productId
  quantity
  currency
  standardDetails {
    unitPriceInformation {
      price
      quantity
      unit {
        id
        name(localization: $localization)
        __typename
      }
      __typename
    }
    isConsumablesSubscriptionDiscountApplicable
    __typename
  }
  fleetDetails @include(if: $isFleetPriceEnabled) {
    unitPriceInformation {
      upfrontCost
      monthlyFee
      __typename
    }
    period
    __typename
  }
  subscriptionDetails @include(if: $isSubscriptionPriceEnabled) {
    unitPriceInformation {
      monthlyPrice
      yearlyPrice
      __typename
    }
    billingType
    __typename
  }
  __typename
}
"""


class PricingAPIError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None, payload: Any | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class HeaderAuth(AuthBase):
    """Send a preformatted ``Authorization`` value (e.g. ``"Basic ..."`` or ``"Bearer ..."``)."""

    def __init__(self, value: str) -> None:
        if not value:
            msg = "authorization value must be provided"
            raise ValueError(msg)
        self.value = value

    def __call__(self, request: PreparedRequest) -> PreparedRequest:
        request.headers["Authorization"] = self.value
        return request


def default_auth() -> AuthBase | None:
    secret = config().pricing_api_authorization
    if secret is None:
        return None
    return HeaderAuth(secret.get_secret_value())


class _PricingAPIClient:
    def __init__(
        self,
        *,
        api_url: str | None = None,
        timeout: float | None = None,
        auth: AuthBase | None = None,
        client_name: str | None = None,
        extra_headers: dict[str, str] | None = None,
        session: requests.Session | None = None,
    ) -> None:
        settings = config()
        self.api_url = api_url or settings.pricing_api_url
        self.timeout = timeout if timeout is not None else settings.pricing_api_timeout
        self.auth = auth if auth is not None else default_auth()
        self._session = session or requests.Session()

        self.headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "apollographql-client-name": client_name or settings.pricing_client_name,
        }
        self.headers.update(settings.pricing_extra_headers if extra_headers is None else extra_headers)

    def street_prices(
        self,
        products: Sequence[PriceRequest],
        *,
        currency: str,
        country: str,
        language: str,
    ) -> list[dict[str, Any]]:
        body = {
            "operationName": "StreetProductsPrices",
            "variables": {
                "filter": {
                    "products": [
                        {"productId": str(product.product_id), "quantity": product.quantity or DEFAULT_QUANTITY}
                        for product in products
                    ],
                    "types": ["FLEET", "STANDARD"],
                    "currency": currency,
                    "country": country,
                },
                "localization": {"country": country, "language": language},
                "isFleetPriceEnabled": True,
                "isSubscriptionPriceEnabled": False,
            },
            "query": STREET_PRICES_QUERY,
        }
        payload = self._request(body)

        data = payload.get("data")
        street_prices = data.get("streetPrices") if isinstance(data, dict) else None
        errors = payload.get("errors")
        if errors:
            if not street_prices:
                raise PricingAPIError(self._graphql_error_message(errors), payload=payload)
            logger.warning("GraphQL errors in pricing response, using partial data: %s", errors)

        if not isinstance(street_prices, list):
            return []
        return [entry for entry in street_prices if isinstance(entry, dict)]

    def _request(self, body: dict[str, Any]) -> dict[str, Any]:
        try:
            response = self._session.request(
                "POST",
                self.api_url,
                json=body,
                headers=self.headers,
                auth=self.auth,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.HTTPError as exc:
            resp = exc.response
            message, payload_err = self._extract_error(resp)
            raise PricingAPIError(message, status_code=getattr(resp, "status_code", None), payload=payload_err) from exc
        except requests.RequestException as exc:
            status_code = getattr(getattr(exc, "response", None), "status_code", None)
            raise PricingAPIError(f"Pricing API request failed: {exc}", status_code=status_code) from exc

        try:
            payload: dict[str, Any] = response.json()
        except ValueError as exc:
            raise PricingAPIError("Pricing API returned invalid JSON", payload=response.text) from exc

        if not isinstance(payload, dict):
            raise PricingAPIError("Pricing API returned unexpected payload type", payload=payload)

        return payload

    @staticmethod
    def _extract_error(response: Response | None) -> tuple[str, Any | None]:
        if response is None:
            return "Pricing API request failed", None
        message = f"HTTP error! status: {response.status_code}"
        try:
            payload = response.json()
        except ValueError:
            payload = response.text
            if payload:
                message = f"{message} - {payload}"
        return message, payload

    @staticmethod
    def _graphql_error_message(errors: Any) -> str:
        if isinstance(errors, list) and errors and isinstance(errors[0], dict) and errors[0].get("message"):
            return str(errors[0]["message"])
        return "Pricing API returned GraphQL errors"


class PricingService:
    """Best-effort product pricing: live API first, catalog second, never raises for missing prices."""

    def __init__(
        self,
        *,
        client: _PricingAPIClient | None = None,
        currency: str | None = None,
        country: str | None = None,
        language: str | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        settings = config()
        self.client = client or _PricingAPIClient()
        self.currency = currency or settings.pricing_currency
        self.country = country or settings.pricing_country
        self.language = language or settings.pricing_language
        self._sleep = sleep

    def fetch_prices(
        self,
        products: Sequence[PriceRequest],
        *,
        country: str | None = None,
        language: str | None = None,
    ) -> list[PricingResult]:
        if not products:
            return []

        logger.info("Fetching prices for %d products from pricing API", len(products))
        try:
            entries = self.client.street_prices(
                products,
                currency=self.currency,
                country=country or self.country,
                language=language or self.language,
            )
        except PricingAPIError as exc:
            logger.error("Pricing API request failed: %s", exc)
            return [PricingResult.failure(product.product_id, str(exc), currency=self.currency) for product in products]

        by_product: dict[str, dict[str, Any]] = {}
        for entry in entries:
            product_id = entry.get("productId")
            if product_id is not None:
                by_product.setdefault(str(product_id), entry)
        logger.info("Received pricing data for %d products", len(by_product))

        results: list[PricingResult] = []
        for product in products:
            entry = by_product.get(str(product.product_id))
            if entry is None:
                results.append(
                    PricingResult.failure(product.product_id, "No price returned for product", currency=self.currency)
                )
                continue
            results.append(self._transform(product.product_id, entry))
        return results

    def fetch_single_price(self, product_id: str, quantity: int = 1) -> PricingResult:
        return self.fetch_prices([PriceRequest(product_id=product_id, quantity=quantity)])[0]

    def fetch_prices_from_catalog(
        self, products: Sequence[PriceRequest], catalog: ProductCatalog | None
    ) -> list[PricingResult]:
        if catalog is None:
            logger.warning("No catalog data available for fallback pricing")
            return [PricingResult.failure(product.product_id, "No catalog data available") for product in products]

        results: list[PricingResult] = []
        for product in products:
            match = catalog.find(product.product_id)
            if match is None or match.pricing is None:
                results.append(PricingResult.failure(product.product_id, "Product not found in catalog"))
                continue
            pricing = match.pricing
            results.append(
                PricingResult(
                    product_id=product.product_id,
                    standard_price=pricing.standard_price,
                    fleet_monthly_price=pricing.fleet_monthly_price,
                    fleet_upfront_cost=pricing.fleet_upfront_cost,
                    currency=pricing.currency or "USD",
                    success=True,
                )
            )
        return results

    def fetch_prices_with_retry(
        self,
        products: Sequence[PriceRequest],
        max_retries: int | None = None,
        catalog: ProductCatalog | None = None,
    ) -> list[PricingResult]:
        if max_retries is None:
            max_retries = config().pricing_max_retries
        for attempt in range(1, max_retries + 1):
            results = self.fetch_prices(products)
            success_count = sum(1 for result in results if result.success)
            if success_count > 0:
                logger.info("Fetched %d/%d prices from pricing API", success_count, len(products))
                return results

            logger.warning("Pricing attempt %d/%d returned no successful prices", attempt, max_retries)
            if attempt < max_retries:
                self._sleep(2**attempt)

        logger.warning("All pricing API attempts failed, trying catalog fallback")
        if catalog is not None:
            catalog_results = self.fetch_prices_from_catalog(products, catalog)
            catalog_success = sum(1 for result in catalog_results if result.success)
            if catalog_success > 0:
                logger.info("Using catalog pricing for %d/%d products", catalog_success, len(products))
                return catalog_results

        logger.error("All pricing methods exhausted for %d products", len(products))
        return [PricingResult.failure(product.product_id, "All pricing methods failed") for product in products]

    def _transform(self, product_id: str, entry: dict[str, Any]) -> PricingResult:
        try:
            standard = (entry.get("standardDetails") or {}).get("unitPriceInformation") or {}
            fleet = (entry.get("fleetDetails") or {}).get("unitPriceInformation") or {}
            return PricingResult(
                product_id=str(entry.get("productId", product_id)),
                standard_price=self._to_decimal(standard.get("price")),
                fleet_monthly_price=self._to_decimal(fleet.get("monthlyFee")),
                fleet_upfront_cost=self._to_decimal(fleet.get("upfrontCost")),
                currency=entry.get("currency") or self.currency,
                success=True,
            )
        except (AttributeError, TypeError, ValueError, InvalidOperation) as exc:
            logger.warning("Could not transform price entry for %s: %s", product_id, exc)
            return PricingResult.failure(product_id, f"Transform error: {exc}", currency=self.currency)

    @staticmethod
    def _to_decimal(value: Any) -> Decimal:
        if value is None or value == "":
            return Decimal("0")
        return Decimal(str(value))


__all__ = ["HeaderAuth", "PricingAPIError", "PricingService", "default_auth"]
