"""
Serveur Python persistant pour le moteur de pricing concurrentiel.

Le serveur attend les requêtes via stdin. Les pipelines tournent en tâches
asyncio détachées : la requête `submit` rend la main immédiatement, le
client interroge ensuite `status` puis lit `result`.
Si une requête plante, le serveur loggue l'erreur mais ne s'arrête pas.

Communication :
- Entrée : JSON ligne par ligne sur stdin
- Sortie : JSON ligne par ligne sur stdout
- Logs : stderr

Actions :
- {"action": "submit", "baseline": {...}, "wait": false}
- {"action": "status", "baselineId": "uuid"}
- {"action": "result", "baselineId": "uuid"}
- {"action": "delete", "baselineId": "uuid"}
"""

import asyncio
import json
import logging
import os
import sys
from typing import Any, Dict

from competitor_pipeline.config.settings import Settings

from pricing_engine.exceptions import PricingEngineError, ValidationError
from pricing_engine.interfaces.data_access import (
    InMemoryPricingRepository,
    PricingRepository,
    SupabasePricingRepository,
)
from pricing_engine.models.entities import ProductBaseline
from pricing_engine.orchestrator import ProcessingOrchestrator

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    "product_name",
    "category",
    "current_price",
    "current_quantity",
    "cost_per_unit",
    "currency",
)
BASELINE_FIELDS = REQUIRED_FIELDS + ("base_elasticity", "merchant_id")


def build_repository(settings: Settings) -> PricingRepository:
    """Supabase si configuré, sinon stockage mémoire (développement local)."""
    if settings.supabase_url and settings.supabase_key:
        return SupabasePricingRepository()
    logger.warning("Supabase not configured, using in-memory repository")
    return InMemoryPricingRepository()


def _baseline_id(data: Dict[str, Any]) -> str:
    baseline_id = data.get("baselineId")
    if not baseline_id:
        raise ValueError("baselineId is required")
    return baseline_id


def _baseline_from_request(payload: Any) -> ProductBaseline:
    if not isinstance(payload, dict):
        raise ValidationError("baseline must be an object")
    missing = [name for name in REQUIRED_FIELDS if payload.get(name) is None]
    if missing:
        raise ValidationError(f"Missing fields: {', '.join(missing)}", field=missing[0])
    return ProductBaseline(**{name: payload[name] for name in BASELINE_FIELDS if name in payload})


async def process_request(orchestrator: ProcessingOrchestrator, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Traite une requête JSON unique.

    Retourne un dict prêt à sérialiser ; les erreurs remontent à la boucle
    qui produit la réponse d'erreur.
    """
    if not isinstance(data, dict):
        raise ValueError("Request must be a JSON object")

    action = data.get("action")

    if action == "submit":
        baseline = await orchestrator.submit(_baseline_from_request(data.get("baseline")))
        response: Dict[str, Any] = {
            "status": "success",
            "baselineId": baseline.id,
            "processing": await orchestrator.get_status(baseline.id),
        }
        if data.get("wait"):
            result = await orchestrator.wait_for_completion(
                baseline.id, timeout=float(data.get("timeout", 120))
            )
            response["processing"] = await orchestrator.get_status(baseline.id)
            response["result"] = result.to_record() if result else None
        return response

    if action == "status":
        baseline_id = _baseline_id(data)
        processing = await orchestrator.get_status(baseline_id)
        if processing is None:
            raise ValueError(f"Unknown baseline: {baseline_id}")
        return {"status": "success", "baselineId": baseline_id, "processing": processing}

    if action == "result":
        baseline_id = _baseline_id(data)
        result = await orchestrator.get_latest_result(baseline_id)
        return {
            "status": "success",
            "baselineId": baseline_id,
            "result": result.to_record() if result else None,
        }

    if action == "delete":
        baseline_id = _baseline_id(data)
        deleted = await orchestrator.repository.soft_delete_baseline(baseline_id)
        return {"status": "success", "baselineId": baseline_id, "deleted": deleted}

    raise ValueError(f"Unknown action: {action}")


def error_response(error: Exception) -> Dict[str, Any]:
    response = {
        "error": str(error),
        "status": "error",
        "type": type(error).__name__,
    }
    if isinstance(error, PricingEngineError) and error.context:
        response["context"] = error.context
    return response


async def serve(orchestrator: ProcessingOrchestrator, stdin=None, stdout=None) -> None:
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    loop = asyncio.get_event_loop()

    # Boucle de lecture sur stdin (hors boucle asyncio pour laisser tourner les pipelines)
    while True:
        line = await loop.run_in_executor(None, stdin.readline)
        if not line:
            break  # Fin du flux (le client a fermé le process)

        line = line.strip()
        if not line:
            continue

        try:
            request_data = json.loads(line)
            response_data = await process_request(orchestrator, request_data)
        except Exception as e:
            # JSON d'erreur pour que le client rejette proprement sa requête
            response_data = error_response(e)
            logger.error(f"Request failed: {e}", exc_info=not isinstance(e, (ValueError, PricingEngineError)))

        stdout.write(json.dumps(response_data, default=str) + "\n")
        stdout.flush()

    await orchestrator.drain()


def main():
    settings = Settings.from_env()
    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logger.info(f"Pricing engine server started (PID: {os.getpid()})")

    orchestrator = ProcessingOrchestrator(build_repository(settings), settings=settings)
    try:
        asyncio.run(serve(orchestrator))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
