"""
Collecteur des offres concurrentes sur les marketplaces (Adapter).

Pour chaque marketplace de la devise du produit :
1. construit les requêtes de recherche (titre simplifié, puis variante courte),
2. récupère la page rendue via le fournisseur de rendu,
3. extrait les annonces (sélecteurs, données structurées, repli texte),
4. ne garde que les offres similaires et dans la bande de prix [0.3x, 3x].

Chaque marketplace est isolée (bulkhead) : timeout explicite, concurrence
bornée par sémaphore, statut success / no_data / failed. Aucun retry ici.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from pricing_engine.exceptions import UpstreamFetchError
from pricing_engine.models.entities import FetchStatus, ProductBaseline

from ..config.marketplace_config import MarketplaceConfig, get_marketplaces_for_currency
from ..config.settings import Settings
from ..normalizers.listing_parser import ListingParser, RawListing, is_blocked_page
from ..normalizers.name_normalizer import normalize, similarity_normalized
from ..normalizers.product_filters import build_search_queries, is_accessory, is_model_mismatch
from .render_client import RenderedContentProvider

logger = logging.getLogger(__name__)

MIN_PRICE_RATIO = 0.3
MAX_PRICE_RATIO = 3.0
MAX_PRODUCTS_PER_MARKETPLACE = 30
MODEL_CHECK_CATEGORIES = ("Electronics & Technology",)


@dataclass
class ScrapedProduct:
    """Offre acceptée pour une marketplace."""
    title: str
    price: float
    similarity: float
    price_ratio: float
    url: Optional[str] = None
    method: str = "selectors"


@dataclass
class MarketplaceScrapeResult:
    marketplace: str
    status: FetchStatus
    products: List[ScrapedProduct] = field(default_factory=list)
    elapsed_seconds: float = 0.0
    error: Optional[str] = None
    queries_tried: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status != FetchStatus.FAILED


def accept_listing(
    listing: RawListing,
    baseline: ProductBaseline,
    normalized_baseline: str,
    threshold: float,
    baseline_is_accessory: bool = False,
) -> Optional[ScrapedProduct]:
    """
    Applique les règles d'acceptation à une annonce brute.

    Returns:
        ScrapedProduct si l'offre est retenue, None sinon
    """
    if listing.price <= 0:
        return None

    if not baseline_is_accessory and is_accessory(listing.title):
        logger.debug(f"Accessory rejected: {listing.title[:60]}")
        return None

    if baseline.category in MODEL_CHECK_CATEGORIES and is_model_mismatch(
        baseline.product_name, listing.title
    ):
        logger.debug(f"Model mismatch rejected: {listing.title[:60]}")
        return None

    score = similarity_normalized(normalized_baseline, normalize(listing.title))
    if score < threshold:
        return None

    ratio = listing.price / baseline.current_price
    if ratio < MIN_PRICE_RATIO or ratio > MAX_PRICE_RATIO:
        logger.debug(f"Price ratio {ratio:.2f} out of band: {listing.title[:60]}")
        return None

    return ScrapedProduct(
        title=listing.title,
        price=listing.price,
        similarity=score,
        price_ratio=ratio,
        url=listing.url,
        method=listing.method,
    )


def rank_products(
    products: Sequence[ScrapedProduct],
    limit: int = MAX_PRODUCTS_PER_MARKETPLACE,
) -> List[ScrapedProduct]:
    """Dédoublonne (titre normalisé, prix) puis trie par similarité décroissante."""
    unique: Dict[tuple, ScrapedProduct] = {}
    for product in products:
        key = (normalize(product.title), round(product.price, 2))
        current = unique.get(key)
        if current is None or product.similarity > current.similarity:
            unique[key] = product
    ranked = sorted(unique.values(), key=lambda p: p.similarity, reverse=True)
    return ranked[:limit]


class MarketplaceCollector:
    """
    Recherche un produit sur toutes les marketplaces de sa devise.

    Le fournisseur de rendu est injecté : tout objet exposant
    `fetch_rendered_html(url, options, source)` convient.
    """

    def __init__(
        self,
        renderer: RenderedContentProvider,
        settings: Optional[Settings] = None,
        marketplaces: Optional[Sequence[MarketplaceConfig]] = None,
    ):
        self.renderer = renderer
        self.settings = settings or Settings.from_env()
        self.marketplaces = list(marketplaces) if marketplaces is not None else None

    def marketplaces_for(self, currency: str) -> List[MarketplaceConfig]:
        if self.marketplaces is not None:
            return [config for config in self.marketplaces if config.currency == currency]
        return get_marketplaces_for_currency(currency, self.settings.disabled_marketplaces)

    async def collect(self, baseline: ProductBaseline) -> List[MarketplaceScrapeResult]:
        """
        Interroge toutes les marketplaces en parallèle (concurrence bornée).

        Ne lève jamais pour une marketplace en échec : l'erreur est portée
        par le résultat correspondant.
        """
        configs = self.marketplaces_for(baseline.currency)
        if not configs:
            logger.warning(f"No marketplace configured for currency {baseline.currency}")
            return []

        semaphore = asyncio.Semaphore(self.settings.max_concurrent_marketplaces)
        logger.info(
            f"Searching {len(configs)} marketplaces for '{baseline.product_name}' "
            f"({baseline.currency} {baseline.current_price:.2f})"
        )
        results = await asyncio.gather(
            *(self.collect_marketplace(config, baseline, semaphore) for config in configs)
        )

        summary = ", ".join(f"{r.marketplace}={r.status.value}({len(r.products)})" for r in results)
        logger.info(f"Marketplace results: {summary}")
        return list(results)

    async def collect_marketplace(
        self,
        config: MarketplaceConfig,
        baseline: ProductBaseline,
        semaphore: Optional[asyncio.Semaphore] = None,
    ) -> MarketplaceScrapeResult:
        """Bulkhead d'une marketplace : timeout explicite, aucune exception propagée."""
        semaphore = semaphore or asyncio.Semaphore(1)
        async with semaphore:
            start = time.monotonic()
            try:
                result = await asyncio.wait_for(
                    self.search_marketplace(config, baseline),
                    timeout=self.settings.marketplace_timeout_seconds,
                )
            except asyncio.TimeoutError:
                logger.warning(
                    f"{config.name}: timed out after {self.settings.marketplace_timeout_seconds}s"
                )
                result = MarketplaceScrapeResult(
                    marketplace=config.key,
                    status=FetchStatus.FAILED,
                    error=f"Timeout after {self.settings.marketplace_timeout_seconds}s",
                )
            except Exception as e:
                logger.error(f"{config.name}: unexpected error: {e}", exc_info=True)
                result = MarketplaceScrapeResult(
                    marketplace=config.key,
                    status=FetchStatus.FAILED,
                    error=str(e),
                )
            result.elapsed_seconds = time.monotonic() - start
            return result

    async def search_marketplace(
        self,
        config: MarketplaceConfig,
        baseline: ProductBaseline,
    ) -> MarketplaceScrapeResult:
        parser = ListingParser(config)
        normalized_baseline = normalize(baseline.product_name)
        baseline_is_accessory = is_accessory(baseline.product_name)
        threshold = self.settings.match_threshold
        # Plancher d'extraction aligné sur la bande de prix du produit
        min_price = MIN_PRICE_RATIO * baseline.current_price

        accepted: List[ScrapedProduct] = []
        fetched_once = False
        last_error: Optional[str] = None
        queries = build_search_queries(baseline.product_name)

        for attempt, query in enumerate(queries, start=1):
            url = config.build_search_url(query)
            try:
                html = await self.renderer.fetch_rendered_html(url, config.render, source=config.key)
            except UpstreamFetchError as e:
                last_error = str(e)
                logger.warning(f"{config.name}: fetch failed for query '{query}': {e}")
                continue

            if is_blocked_page(html):
                last_error = "Blocked page (captcha)"
                logger.warning(f"{config.name}: blocked page for query '{query}'")
                continue
            fetched_once = True

            listings = parser.parse(html, baseline.product_name, min_price=min_price)
            for listing in listings:
                product = accept_listing(
                    listing, baseline, normalized_baseline, threshold, baseline_is_accessory
                )
                if product is not None:
                    accepted.append(product)

            logger.info(
                f"{config.name}: query {attempt}/{len(queries)} '{query}' -> "
                f"{len(listings)} listings, {len(accepted)} accepted"
            )
            if accepted:
                break

        if accepted:
            status = FetchStatus.SUCCESS
        elif fetched_once:
            status = FetchStatus.NO_DATA
        else:
            status = FetchStatus.FAILED

        return MarketplaceScrapeResult(
            marketplace=config.key,
            status=status,
            products=rank_products(accepted),
            error=None if status != FetchStatus.FAILED else last_error,
            queries_tried=attempt if queries else 0,
        )
