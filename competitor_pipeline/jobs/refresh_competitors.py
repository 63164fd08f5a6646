"""
Job de rafraîchissement des offres concurrentes d'un produit.

Étapes :
1. recherche sur toutes les marketplaces de la devise (bulkhead),
2. filtre des prix anormalement bas par marketplace,
3. construction des offres classées et des agrégats par marketplace,
4. remplacement atomique des données concurrentes du produit.

Si aucune marketplace n'est interrogée, si toutes échouent ou si
l'écriture échoue, les données existantes sont conservées et
`UpstreamFetchError` est levée (l'orchestrateur décide du retry).
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from pricing_engine.exceptions import UpstreamFetchError
from pricing_engine.interfaces.data_access import PricingRepository, SupabasePricingRepository
from pricing_engine.models.entities import (
    CompetitorProduct,
    FetchStatus,
    MarketAggregate,
    ProductBaseline,
)

from ..collectors.marketplace_collector import MarketplaceCollector, MarketplaceScrapeResult
from ..collectors.render_client import ScrapingBeeRenderer
from ..config import create_rate_limiter
from ..config.settings import Settings
from ..normalizers.product_filters import filter_low_price_outliers
from ..utils.validators import filter_valid_rows

logger = logging.getLogger(__name__)

# Similarité minimale d'une offre pour entrer dans l'agrégat marketplace
AGGREGATE_MIN_SIMILARITY = 0.6


def build_competitor_products(
    baseline: ProductBaseline,
    results: Sequence[MarketplaceScrapeResult],
) -> List[CompetitorProduct]:
    """Offres classées (rang 1 = plus similaire) après filtre des prix bas."""
    products: List[CompetitorProduct] = []
    for result in results:
        kept = filter_low_price_outliers(result.products)
        for index, scraped in enumerate(kept):
            products.append(CompetitorProduct(
                baseline_id=baseline.id,
                marketplace=result.marketplace,
                product_name=scraped.title,
                price=round(scraped.price, 2),
                similarity_score=round(scraped.similarity, 4),
                price_ratio=round(scraped.price_ratio, 4),
                rank=index + 1,
                url=scraped.url,
                currency=baseline.currency,
            ))

    valid_records = filter_valid_rows("competitor_products", [p.to_record() for p in products])
    if len(valid_records) < len(products):
        logger.warning(f"Dropped {len(products) - len(valid_records)} invalid competitor rows")
        valid_keys = {(r["marketplace"], r["rank"]) for r in valid_records}
        products = [p for p in products if (p.marketplace, p.rank) in valid_keys]
    return products


def build_market_aggregates(
    baseline: ProductBaseline,
    results: Sequence[MarketplaceScrapeResult],
    products: Sequence[CompetitorProduct],
    min_similarity: float = AGGREGATE_MIN_SIMILARITY,
) -> List[MarketAggregate]:
    """
    Une ligne par marketplace interrogée : plus bas / moyen / plus haut
    sur les offres de similarité >= `min_similarity`.
    """
    df = pd.DataFrame(
        [{"marketplace": p.marketplace, "price": p.price, "similarity": p.similarity_score} for p in products],
        columns=["marketplace", "price", "similarity"],
    ).astype({"price": float, "similarity": float})
    df = df[df["similarity"] >= min_similarity]
    grouped = df.groupby("marketplace")["price"].agg(["min", "mean", "max", "count"])

    aggregates: List[MarketAggregate] = []
    for result in results:
        if result.status == FetchStatus.FAILED:
            aggregates.append(MarketAggregate(
                baseline_id=baseline.id,
                marketplace=result.marketplace,
                fetch_status=FetchStatus.FAILED,
                currency=baseline.currency,
            ))
            continue

        if result.marketplace not in grouped.index:
            aggregates.append(MarketAggregate(
                baseline_id=baseline.id,
                marketplace=result.marketplace,
                fetch_status=FetchStatus.NO_DATA,
                currency=baseline.currency,
            ))
            continue

        row = grouped.loc[result.marketplace]
        aggregates.append(MarketAggregate(
            baseline_id=baseline.id,
            marketplace=result.marketplace,
            fetch_status=FetchStatus.SUCCESS,
            lowest_price=round(float(row["min"]), 2),
            average_price=round(float(row["mean"]), 2),
            highest_price=round(float(row["max"]), 2),
            products_found=int(row["count"]),
            currency=baseline.currency,
        ))
    return aggregates


async def refresh_competitor_data(
    baseline: ProductBaseline,
    repository: PricingRepository,
    collector: Optional[MarketplaceCollector] = None,
    settings: Optional[Settings] = None,
) -> Dict[str, Any]:
    """
    Rafraîchit les offres concurrentes d'un produit.

    Args:
        baseline: Produit de référence
        repository: Persistance (remplacement atomique)
        collector: Collecteur marketplaces (si None, ScrapingBee)
        settings: Configuration (si None, charge depuis env)

    Returns:
        Rapport du rafraîchissement (statut par marketplace)

    Raises:
        UpstreamFetchError: Aucune marketplace interrogée, toutes en échec,
            ou écriture impossible
    """
    settings = settings or Settings.from_env()
    start_time = datetime.now()

    rate_limiter = None
    if collector is None:
        rate_limiter = create_rate_limiter("scrapingbee")
        async with ScrapingBeeRenderer(rate_limiter=rate_limiter, settings=settings) as renderer:
            results = await MarketplaceCollector(renderer, settings).collect(baseline)
    else:
        results = await collector.collect(baseline)

    report: Dict[str, Any] = {
        "baseline_id": baseline.id,
        "start_time": start_time.isoformat(),
        "marketplaces": {
            r.marketplace: {
                "status": r.status.value,
                "products": len(r.products),
                "elapsed_seconds": round(r.elapsed_seconds, 2),
                "error": r.error,
            }
            for r in results
        },
        "products_stored": 0,
        "status": "skipped",
    }
    if rate_limiter is not None:
        report["rate_limit"] = rate_limiter.get_stats()

    if not results:
        logger.error(f"No marketplace searched for {baseline.id} ({baseline.currency})")
        raise UpstreamFetchError(f"No marketplace available for currency {baseline.currency}")

    if all(r.status == FetchStatus.FAILED for r in results):
        errors = "; ".join(f"{r.marketplace}: {r.error}" for r in results)
        logger.error(f"All {len(results)} marketplaces failed for {baseline.id}: {errors}")
        raise UpstreamFetchError(f"All marketplaces failed ({errors})")

    products = build_competitor_products(baseline, results)
    aggregates = build_market_aggregates(baseline, results, products)
    try:
        await repository.replace_competitor_data(baseline.id, products, aggregates)
    except Exception as e:
        logger.error(f"Failed to store competitor data for {baseline.id}: {e}")
        raise UpstreamFetchError(f"Failed to store competitor data: {e}") from e

    duration = (datetime.now() - start_time).total_seconds()
    failed = sum(1 for r in results if r.status == FetchStatus.FAILED)
    report["products_stored"] = len(products)
    report["duration_seconds"] = duration
    report["status"] = "partial" if failed else "success"

    logger.info(
        f"Competitor refresh for {baseline.id}: {len(products)} products from "
        f"{len(results) - failed}/{len(results)} marketplaces in {duration:.2f}s"
    )
    return report


async def _run_cli(baseline_id: str) -> Dict[str, Any]:
    repository = SupabasePricingRepository()
    baseline = await repository.get_baseline(baseline_id)
    if baseline is None or baseline.is_deleted:
        raise ValueError(f"Baseline not found: {baseline_id}")
    return await refresh_competitor_data(baseline, repository)


def main():
    """Point d'entrée CLI."""
    parser = argparse.ArgumentParser(
        description="Refresh competitor prices for a product baseline"
    )
    parser.add_argument("--baseline-id", required=True, help="Product baseline id")
    parser.add_argument("--json", action="store_true", help="Output report as JSON")
    args = parser.parse_args()

    settings = Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        report = asyncio.run(_run_cli(args.baseline_id))
    except Exception as e:
        logger.error(f"Competitor refresh failed: {e}", exc_info=True)
        sys.exit(1)

    if args.json:
        print(json.dumps(report, indent=2, default=str))
    else:
        print(f"Status: {report['status']}")
        print(f"Products stored: {report['products_stored']}")
        for key, info in report["marketplaces"].items():
            print(f"  {key}: {info['status']} ({info['products']} products, {info['elapsed_seconds']}s)")
        if "rate_limit" in report:
            print(f"ScrapingBee requests (last minute): {report['rate_limit']['requests_last_minute']}")


if __name__ == "__main__":
    main()
