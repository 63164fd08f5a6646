"""
Exceptions du moteur de pricing concurrentiel.

Taxonomie :
- ValidationError : baseline produit invalide, rejetée avant le pipeline,
- UpstreamFetchError : échec de collecte d'une marketplace / du fournisseur de rendu,
- DataQualityError : données marché refusées par le validateur (dégradation, pas un échec),
- PipelineError : erreur inattendue d'orchestration (baseline marquée `failed`).
"""

from typing import Any, Dict, Optional


class PricingEngineError(Exception):
    """
    Exception de base du moteur.

    Attributes:
        message: Message lisible
        context: Informations additionnelles (baseline_id, marketplace, etc.)
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convertit l'erreur en dictionnaire (réponses JSON, logs)."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class ValidationError(PricingEngineError):
    """Baseline produit mal formée (prix, coût, catégorie, devise...)."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, context={"field": field} if field else None)
        self.field = field


class UpstreamFetchError(PricingEngineError):
    """Échec de récupération d'une page marketplace (HTTP, timeout, quota)."""

    def __init__(
        self,
        message: str,
        marketplace: Optional[str] = None,
        status: Optional[int] = None,
    ):
        super().__init__(
            message,
            context={"marketplace": marketplace, "status": status},
        )
        self.marketplace = marketplace
        self.status = status


class DataQualityError(PricingEngineError):
    """
    Données marché insuffisantes ou contaminées.

    Porte le résultat du validateur pour que l'appelant puisse produire
    un PricingResult de repli (prix courant + avertissement).
    """

    def __init__(self, validation: Any):
        super().__init__(validation.reason)
        self.validation = validation


class PipelineError(PricingEngineError):
    """Erreur inattendue pendant l'orchestration d'une baseline."""

    def __init__(self, message: str, baseline_id: Optional[str] = None, step: Optional[str] = None):
        super().__init__(message, context={"baseline_id": baseline_id, "step": step})
        self.baseline_id = baseline_id
        self.step = step
