"""
Orchestrateur du pipeline de pricing d'une baseline.

Machine à états :

    pending(queued)
      -> processing(fetching_inflation)
      -> processing(fetching_competitors)
      -> processing(calculating_price)
      -> completed(complete) | failed

- `trigger()` est idempotent : un statut déjà présent pour la baseline
  empêche tout nouveau run (insert-if-absent atomique).
- Le rafraîchissement concurrentiel est réessayé (backoff linéaire) ; après
  épuisement, le pipeline continue avec les données déjà en base.
- Les données marché refusées par le validateur donnent un résultat
  « prix courant + avertissement », pas un échec.
- Toute autre exception marque la baseline `failed` avec son message.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

import aiohttp

from competitor_pipeline.config.settings import Settings
from competitor_pipeline.jobs.refresh_competitors import refresh_competitor_data

from .exceptions import DataQualityError, PipelineError, UpstreamFetchError
from .interfaces.data_access import PricingRepository
from .interfaces.inflation import InflationProvider, StaticInflationProvider
from .models.entities import (
    InflationSnapshot,
    PricingResult,
    ProcessingStatus,
    ProductBaseline,
    Status,
    Step,
)
from .models.market_model import MarketStatsAggregator
from .optimizer import PricingDecisionEngine
from .validation import MarketDataValidator

logger = logging.getLogger(__name__)

RefreshFunction = Callable[[ProductBaseline, PricingRepository], Awaitable[Any]]

RETRYABLE_ERRORS = (UpstreamFetchError, aiohttp.ClientError, asyncio.TimeoutError)


class ProcessingOrchestrator:
    """
    Enchaîne inflation -> concurrents -> calcul du prix pour une baseline.

    Utilisation typique :
        orchestrator = ProcessingOrchestrator(repository)
        baseline = await orchestrator.submit(baseline)
        result = await orchestrator.wait_for_completion(baseline.id)
    """

    def __init__(
        self,
        repository: PricingRepository,
        inflation_provider: Optional[InflationProvider] = None,
        refresh: Optional[RefreshFunction] = None,
        engine: Optional[PricingDecisionEngine] = None,
        validator: Optional[MarketDataValidator] = None,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.repository = repository
        self.inflation_provider = inflation_provider or StaticInflationProvider()
        self.settings = settings or Settings.from_env()
        self.refresh = refresh or self._default_refresh
        self.engine = engine or PricingDecisionEngine()
        self.validator = validator or MarketDataValidator()
        self._sleep = sleep
        self._tasks: Dict[str, asyncio.Task] = {}

    async def _default_refresh(self, baseline: ProductBaseline, repository: PricingRepository) -> Any:
        return await refresh_competitor_data(baseline, repository, settings=self.settings)

    async def submit(self, baseline: ProductBaseline) -> ProductBaseline:
        """
        Enregistre une baseline (déjà validée à la construction) et lance
        son pipeline en tâche détachée.
        """
        await self.repository.save_baseline(baseline)
        logger.info(f"Submitted baseline {baseline.id}: {baseline.product_name}")
        await self.trigger(baseline.id)
        return baseline

    async def trigger(self, baseline_id: str) -> bool:
        """
        Lance le pipeline si aucun statut n'existe pour la baseline.

        Returns:
            True si un run a été démarré, False s'il existait déjà
        """
        inserted = await self.repository.insert_status_if_absent(ProcessingStatus(baseline_id))
        if not inserted:
            logger.info(f"Baseline {baseline_id} already has a status, pipeline not re-triggered")
            return False

        task = asyncio.create_task(self.run_pipeline(baseline_id))
        self._tasks[baseline_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(baseline_id, None))
        return True

    async def _set_status(
        self,
        baseline_id: str,
        status: Status,
        step: Step,
        error_message: Optional[str] = None,
    ) -> None:
        await self.repository.upsert_status(ProcessingStatus(
            baseline_id=baseline_id,
            status=status,
            current_step=step,
            error_message=error_message,
        ))
        logger.info(f"Baseline {baseline_id}: {status.value} ({step.value})")

    async def run_pipeline(self, baseline_id: str) -> Optional[PricingResult]:
        """Exécute toutes les étapes ; ne lève jamais (échec => statut `failed`)."""
        step = Step.QUEUED
        try:
            baseline = await self.repository.get_baseline(baseline_id)
            if baseline is None or baseline.is_deleted:
                raise PipelineError("Baseline not found", baseline_id=baseline_id, step=step.value)

            step = Step.FETCHING_INFLATION
            await self._set_status(baseline_id, Status.PROCESSING, step)
            inflation = await self.inflation_provider.get_inflation(baseline.currency)
            await self.repository.record_inflation(inflation)

            step = Step.FETCHING_COMPETITORS
            await self._set_status(baseline_id, Status.PROCESSING, step)
            await self._refresh_with_retry(baseline)
            await self._sleep(self.settings.settle_delay_seconds)

            step = Step.CALCULATING_PRICE
            await self._set_status(baseline_id, Status.PROCESSING, step)
            result = await self.calculate_price(baseline, inflation)
            await self.repository.append_pricing_result(result)

            await self._set_status(baseline_id, Status.COMPLETED, Step.COMPLETE)
            return result

        except Exception as e:
            error = e if isinstance(e, PipelineError) else PipelineError(
                str(e) or e.__class__.__name__, baseline_id=baseline_id, step=step.value
            )
            logger.error(f"Pipeline failed for {baseline_id} at {step.value}: {error}", exc_info=True)
            await self._set_status(baseline_id, Status.FAILED, step, error_message=error.message)
            return None

    async def _refresh_with_retry(self, baseline: ProductBaseline) -> bool:
        """
        Rafraîchit les concurrents (3 tentatives, attente 3 s puis 6 s).

        Returns:
            True si un rafraîchissement a réussi, False si l'on continue
            avec les données existantes
        """
        max_attempts = self.settings.max_retries
        for attempt in range(1, max_attempts + 1):
            try:
                await self.refresh(baseline, self.repository)
                return True
            except RETRYABLE_ERRORS as e:
                if attempt >= max_attempts:
                    logger.warning(
                        f"Competitor refresh failed {attempt} times for {baseline.id}, "
                        f"continuing with existing data: {e}"
                    )
                    return False
                delay = self.settings.retry_backoff_seconds * attempt
                logger.warning(
                    f"Competitor refresh attempt {attempt}/{max_attempts} failed for "
                    f"{baseline.id}: {e}. Retrying in {delay:.1f}s"
                )
                await self._sleep(delay)
        return False

    async def calculate_price(
        self, baseline: ProductBaseline, inflation: InflationSnapshot
    ) -> PricingResult:
        products = await self.repository.get_competitor_products(baseline.id)
        aggregates = await self.repository.get_market_aggregates(baseline.id)

        stats = MarketStatsAggregator(self.engine.config_for(baseline)).aggregate(products, aggregates)
        validation = self.validator.validate(baseline, stats, products)
        try:
            validation.ensure_valid()
        except DataQualityError as e:
            logger.warning(f"Baseline {baseline.id}: keeping current price ({e.message})")

        return self.engine.decide(baseline, stats, validation, inflation)

    async def get_status(self, baseline_id: str) -> Optional[Dict[str, Any]]:
        status = await self.repository.get_status(baseline_id)
        return status.to_dict() if status else None

    async def get_latest_result(self, baseline_id: str) -> Optional[PricingResult]:
        return await self.repository.get_latest_result(baseline_id)

    async def wait_for_completion(
        self,
        baseline_id: str,
        timeout: float = 120.0,
        poll_interval: float = 0.5,
    ) -> Optional[PricingResult]:
        """
        Attend un statut terminal puis retourne le dernier résultat
        (None si le pipeline a échoué).

        Raises:
            asyncio.TimeoutError: Statut non terminal après `timeout` secondes
        """
        deadline = time.monotonic() + timeout
        while True:
            status = await self.repository.get_status(baseline_id)
            if status is not None and status.status.is_terminal:
                if status.status == Status.FAILED:
                    logger.warning(f"Baseline {baseline_id} failed: {status.error_message}")
                    return None
                return await self.repository.get_latest_result(baseline_id)
            if time.monotonic() >= deadline:
                raise asyncio.TimeoutError(f"Baseline {baseline_id} not completed after {timeout}s")
            await asyncio.sleep(poll_interval)

    async def drain(self) -> None:
        """Attend la fin des pipelines en cours."""
        tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks)
