"""
Accès aux données du moteur de pricing.

Ce module fournit une couche d'abstraction entre le moteur et la base
(Supabase/PostgreSQL) :
- `PricingRepository` : interface utilisée par l'orchestrateur et le job
  de rafraîchissement concurrentiel,
- `SupabasePricingRepository` : implémentation Supabase (appels bloquants
  exécutés dans le thread pool via `run_in_executor`),
- `InMemoryPricingRepository` : implémentation mémoire (tests, serveur local).

IMPORTANT :
- La configuration Supabase est celle de `competitor_pipeline.config.settings`
  (`SUPABASE_URL` et `SUPABASE_SERVICE_ROLE_KEY`), pour garder une
  configuration unique.
- Le remplacement des offres concurrentes d'un produit est atomique :
  aucun lecteur ne voit d'état partiel (fonction SQL `replace_competitor_data`
  côté Supabase, échange sous verrou côté mémoire).
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence

from supabase import Client, create_client  # type: ignore

from competitor_pipeline.config.settings import Settings
from pricing_engine.models.entities import (
    CompetitorProduct,
    InflationSnapshot,
    MarketAggregate,
    PricingResult,
    ProcessingStatus,
    ProductBaseline,
)

logger = logging.getLogger(__name__)

BASELINES_TABLE = "product_baselines"
PRODUCTS_TABLE = "competitor_products"
AGGREGATES_TABLE = "competitor_prices"
RESULTS_TABLE = "pricing_results"
STATUS_TABLE = "processing_status"
INFLATION_TABLE = "inflation_snapshots"

_supabase_client: Optional[Client] = None


def get_supabase_client() -> Client:
    """
    Retourne un client Supabase initialisé (singleton module).

    Raises:
        RuntimeError: Variables d'environnement Supabase absentes
    """
    global _supabase_client

    if _supabase_client is not None:
        return _supabase_client

    settings = Settings.from_env()
    if not settings.supabase_url or not settings.supabase_key:
        raise RuntimeError(
            "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY/SUPABASE_KEY must be configured "
            "to use the Supabase repository."
        )

    _supabase_client = create_client(settings.supabase_url, settings.supabase_key)
    return _supabase_client


class PricingRepository(ABC):
    """Interface de persistance du pipeline de pricing."""

    @abstractmethod
    async def save_baseline(self, baseline: ProductBaseline) -> ProductBaseline:
        ...

    @abstractmethod
    async def get_baseline(self, baseline_id: str) -> Optional[ProductBaseline]:
        ...

    @abstractmethod
    async def soft_delete_baseline(self, baseline_id: str) -> bool:
        ...

    @abstractmethod
    async def insert_status_if_absent(self, status: ProcessingStatus) -> bool:
        """Insère le statut seulement s'il n'en existe aucun. True si inséré."""

    @abstractmethod
    async def upsert_status(self, status: ProcessingStatus) -> None:
        """Écrase le statut (last-writer-wins)."""

    @abstractmethod
    async def get_status(self, baseline_id: str) -> Optional[ProcessingStatus]:
        ...

    @abstractmethod
    async def replace_competitor_data(
        self,
        baseline_id: str,
        products: Sequence[CompetitorProduct],
        aggregates: Sequence[MarketAggregate],
    ) -> None:
        """Remplace atomiquement les offres et agrégats d'un produit."""

    @abstractmethod
    async def get_competitor_products(
        self, baseline_id: str, min_similarity: float = 0.0
    ) -> List[CompetitorProduct]:
        ...

    @abstractmethod
    async def get_market_aggregates(self, baseline_id: str) -> List[MarketAggregate]:
        ...

    @abstractmethod
    async def append_pricing_result(self, result: PricingResult) -> None:
        ...

    @abstractmethod
    async def get_latest_result(self, baseline_id: str) -> Optional[PricingResult]:
        ...

    @abstractmethod
    async def record_inflation(self, snapshot: InflationSnapshot) -> None:
        ...


class SupabasePricingRepository(PricingRepository):
    """Implémentation Supabase (client synchrone exécuté hors boucle)."""

    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    async def _execute(self, build: Callable[[Client], Any]) -> List[Dict[str, Any]]:
        loop = asyncio.get_event_loop()
        response = await loop.run_in_executor(None, lambda: build(self.client).execute())

        # Vérifier si response.data existe (compatible avec différentes versions de Supabase)
        if not hasattr(response, "data"):
            raise RuntimeError("Invalid Supabase response: missing 'data' attribute")
        return response.data or []

    async def save_baseline(self, baseline: ProductBaseline) -> ProductBaseline:
        record = baseline.to_record()
        await self._execute(lambda c: c.table(BASELINES_TABLE).insert(record))
        logger.info(f"Stored baseline {baseline.id} ({baseline.product_name})")
        return baseline

    async def get_baseline(self, baseline_id: str) -> Optional[ProductBaseline]:
        rows = await self._execute(
            lambda c: c.table(BASELINES_TABLE).select("*").eq("id", baseline_id).limit(1)
        )
        return ProductBaseline.from_record(rows[0]) if rows else None

    async def soft_delete_baseline(self, baseline_id: str) -> bool:
        baseline = await self.get_baseline(baseline_id)
        if baseline is None or baseline.is_deleted:
            return False
        deleted = baseline.soft_deleted()
        await self._execute(
            lambda c: c.table(BASELINES_TABLE)
            .update({"deleted_at": deleted.deleted_at.isoformat()})
            .eq("id", baseline_id)
        )
        return True

    async def insert_status_if_absent(self, status: ProcessingStatus) -> bool:
        # ON CONFLICT DO NOTHING : la ligne n'est renvoyée que si elle a été insérée
        rows = await self._execute(
            lambda c: c.table(STATUS_TABLE).upsert(
                status.to_record(),
                on_conflict="baseline_id",
                ignore_duplicates=True,
            )
        )
        return bool(rows)

    async def upsert_status(self, status: ProcessingStatus) -> None:
        await self._execute(
            lambda c: c.table(STATUS_TABLE).upsert(status.to_record(), on_conflict="baseline_id")
        )

    async def get_status(self, baseline_id: str) -> Optional[ProcessingStatus]:
        rows = await self._execute(
            lambda c: c.table(STATUS_TABLE).select("*").eq("baseline_id", baseline_id).limit(1)
        )
        return ProcessingStatus.from_record(rows[0]) if rows else None

    async def replace_competitor_data(
        self,
        baseline_id: str,
        products: Sequence[CompetitorProduct],
        aggregates: Sequence[MarketAggregate],
    ) -> None:
        params = {
            "p_baseline_id": baseline_id,
            "p_products": [product.to_record() for product in products],
            "p_aggregates": [aggregate.to_record() for aggregate in aggregates],
        }
        await self._execute(lambda c: c.rpc("replace_competitor_data", params))
        logger.info(
            f"Replaced competitor data for {baseline_id}: "
            f"{len(products)} products, {len(aggregates)} marketplace aggregates"
        )

    async def get_competitor_products(
        self, baseline_id: str, min_similarity: float = 0.0
    ) -> List[CompetitorProduct]:
        rows = await self._execute(
            lambda c: c.table(PRODUCTS_TABLE)
            .select("*")
            .eq("baseline_id", baseline_id)
            .gte("similarity_score", min_similarity)
            .order("similarity_score", desc=True)
        )
        return [CompetitorProduct.from_record(row) for row in rows]

    async def get_market_aggregates(self, baseline_id: str) -> List[MarketAggregate]:
        rows = await self._execute(
            lambda c: c.table(AGGREGATES_TABLE).select("*").eq("baseline_id", baseline_id)
        )
        return [MarketAggregate.from_record(row) for row in rows]

    async def append_pricing_result(self, result: PricingResult) -> None:
        await self._execute(lambda c: c.table(RESULTS_TABLE).insert(result.to_record()))

    async def get_latest_result(self, baseline_id: str) -> Optional[PricingResult]:
        rows = await self._execute(
            lambda c: c.table(RESULTS_TABLE)
            .select("*")
            .eq("baseline_id", baseline_id)
            .order("created_at", desc=True)
            .limit(1)
        )
        return PricingResult.from_record(rows[0]) if rows else None

    async def record_inflation(self, snapshot: InflationSnapshot) -> None:
        await self._execute(lambda c: c.table(INFLATION_TABLE).insert(snapshot.to_record()))


class InMemoryPricingRepository(PricingRepository):
    """
    Implémentation mémoire.

    Un seul verrou asyncio protège les sections qui doivent être atomiques
    (insert-if-absent du statut, remplacement des offres concurrentes).
    """

    def __init__(self):
        self.baselines: Dict[str, ProductBaseline] = {}
        self.statuses: Dict[str, ProcessingStatus] = {}
        self.products: Dict[str, List[CompetitorProduct]] = {}
        self.aggregates: Dict[str, List[MarketAggregate]] = {}
        self.results: Dict[str, List[PricingResult]] = {}
        self.inflation: List[InflationSnapshot] = []
        self._lock = asyncio.Lock()

    async def save_baseline(self, baseline: ProductBaseline) -> ProductBaseline:
        self.baselines[baseline.id] = baseline
        return baseline

    async def get_baseline(self, baseline_id: str) -> Optional[ProductBaseline]:
        return self.baselines.get(baseline_id)

    async def soft_delete_baseline(self, baseline_id: str) -> bool:
        baseline = self.baselines.get(baseline_id)
        if baseline is None or baseline.is_deleted:
            return False
        self.baselines[baseline_id] = baseline.soft_deleted()
        return True

    async def insert_status_if_absent(self, status: ProcessingStatus) -> bool:
        async with self._lock:
            if status.baseline_id in self.statuses:
                return False
            self.statuses[status.baseline_id] = status
            return True

    async def upsert_status(self, status: ProcessingStatus) -> None:
        self.statuses[status.baseline_id] = status

    async def get_status(self, baseline_id: str) -> Optional[ProcessingStatus]:
        return self.statuses.get(baseline_id)

    async def replace_competitor_data(
        self,
        baseline_id: str,
        products: Sequence[CompetitorProduct],
        aggregates: Sequence[MarketAggregate],
    ) -> None:
        new_products = list(products)
        new_aggregates = list(aggregates)
        async with self._lock:
            self.products[baseline_id] = new_products
            self.aggregates[baseline_id] = new_aggregates

    async def get_competitor_products(
        self, baseline_id: str, min_similarity: float = 0.0
    ) -> List[CompetitorProduct]:
        products = [
            p for p in self.products.get(baseline_id, []) if p.similarity_score >= min_similarity
        ]
        return sorted(products, key=lambda p: p.similarity_score, reverse=True)

    async def get_market_aggregates(self, baseline_id: str) -> List[MarketAggregate]:
        return list(self.aggregates.get(baseline_id, []))

    async def append_pricing_result(self, result: PricingResult) -> None:
        self.results.setdefault(result.baseline_id, []).append(result)

    async def get_latest_result(self, baseline_id: str) -> Optional[PricingResult]:
        history = self.results.get(baseline_id)
        return history[-1] if history else None

    async def record_inflation(self, snapshot: InflationSnapshot) -> None:
        self.inflation.append(snapshot)
