"""
Fixtures partagées pour les tests du moteur de pricing.
"""

import sys
from pathlib import Path
from typing import List

import pytest

# Ajouter la racine du projet au path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from competitor_pipeline.config.settings import Settings
from pricing_engine.interfaces.data_access import InMemoryPricingRepository
from pricing_engine.models.entities import (
    CompetitorProduct,
    InflationSnapshot,
    ProcessingStatus,
    ProductBaseline,
)


@pytest.fixture
def home_baseline():
    """Baseline de référence : prix 100, coût 60, élasticité -2, zones par défaut."""
    return ProductBaseline(
        product_name="Ergonomic Office Chair Mesh Back",
        category="Home & Furniture",
        current_price=100.0,
        current_quantity=50,
        cost_per_unit=60.0,
        currency="SAR",
        base_elasticity=-2.0,
        id="baseline-chair",
    )


@pytest.fixture
def no_inflation():
    return InflationSnapshot(currency="SAR", rate=0.0, source="test")


@pytest.fixture
def make_products():
    """Construit des offres concurrentes à partir de (prix, similarité)."""
    def build(pairs, baseline_id="baseline-chair", marketplace="amazon"):
        return [
            CompetitorProduct(
                baseline_id=baseline_id,
                marketplace=marketplace,
                product_name=f"Office Chair {i}",
                price=price,
                similarity_score=score,
                price_ratio=price / 100.0,
                rank=i + 1,
            )
            for i, (price, score) in enumerate(pairs)
        ]
    return build


@pytest.fixture
def engine_settings():
    """Backoff et délai par défaut (3 s, 1 s), sans Supabase."""
    return Settings(supabase_url="", supabase_key="")


class RecordingRepository(InMemoryPricingRepository):
    """Dépôt mémoire qui garde l'historique des statuts écrits."""

    def __init__(self):
        super().__init__()
        self.status_history: List[ProcessingStatus] = []

    async def upsert_status(self, status: ProcessingStatus) -> None:
        self.status_history.append(status)
        await super().upsert_status(status)

    def steps(self) -> List[str]:
        return [s.current_step.value for s in self.status_history]


@pytest.fixture
def repository():
    return RecordingRepository()


@pytest.fixture
def sleep_recorder():
    """Remplace asyncio.sleep : enregistre les délais sans attendre."""
    class SleepRecorder:
        def __init__(self):
            self.calls: List[float] = []

        async def __call__(self, seconds):
            self.calls.append(seconds)

    return SleepRecorder()
