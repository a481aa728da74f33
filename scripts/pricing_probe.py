# flake8: noqa E402
# Run via uv for access to dev deps, e.g.:
# uv run scripts/pricing_probe.py --product 2246798 --product 2149418:3 --catalog data/catalog.json
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

# Ensure the src directory is importable when the script is invoked via uv/python directly.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from services.catalog import ProductCatalog, load_catalog
from services.pricing_client import PricingService
from services.pricing_types import PriceRequest


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Probe the pricing API with catalog fallback.")
    parser.add_argument(
        "--product",
        action="append",
        dest="products",
        required=True,
        type=parse_request,
        help="Product id, optionally with quantity as ID:QTY. Can be repeated.",
    )
    parser.add_argument("--catalog", type=Path, help="Catalog JSON used when the API yields no prices.")
    parser.add_argument(
        "--retries",
        type=int,
        default=None,
        help="Number of API attempts before falling back to the catalog (default: PRICING_MAX_RETRIES).",
    )
    parser.add_argument("--country", default=None, help="Override the configured pricing country.")
    return parser.parse_args(argv)


def parse_request(raw: str) -> PriceRequest:
    product_id, _, quantity = raw.partition(":")
    if not product_id:
        raise argparse.ArgumentTypeError(f"missing product id in {raw!r}")
    if not quantity:
        return PriceRequest(product_id=product_id)
    try:
        count = int(quantity)
    except ValueError:
        raise argparse.ArgumentTypeError(f"quantity must be an integer, got {quantity!r}") from None
    if count < 1:
        raise argparse.ArgumentTypeError(f"quantity must be positive, got {count}")
    return PriceRequest(product_id=product_id, quantity=count)


def main(argv: Sequence[str] | None = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    args = parse_args(argv)

    requests_: list[PriceRequest] = args.products
    catalog: ProductCatalog | None = load_catalog(args.catalog) if args.catalog else None
    service = PricingService(country=args.country)

    results = service.fetch_prices_with_retry(requests_, max_retries=args.retries, catalog=catalog)
    for result in results:
        if result.success:
            print(
                f"[ok] {result.product_id}: standard {result.standard_price} {result.currency}, "
                f"fleet {result.fleet_monthly_price}/month + {result.fleet_upfront_cost} upfront"
            )
        else:
            print(f"[failed] {result.product_id}: {result.error}")


if __name__ == "__main__":
    main()
