"""
Entités du moteur de pricing concurrentiel.

- ProductBaseline : produit du marchand (immuable, soft-delete),
- CompetitorProduct : offre concurrente rattachée à une baseline,
- MarketAggregate : agrégat historique par marketplace (fallback),
- MarketStats : statistiques marché dérivées (jamais persistées seules),
- PricingResult : recommandation de prix (historique append-only),
- ProcessingStatus : état courant du pipeline pour une baseline,
- InflationSnapshot : taux d'inflation utilisé pour un run.

Les méthodes `to_record` / `from_record` font la conversion avec les lignes
Supabase (dict JSON-compatibles).
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from ..exceptions import ValidationError
from .categories import CATEGORIES, get_category


ALLOWED_CURRENCIES = ("SAR", "USD")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _serialize(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def _record_from_dataclass(obj: Any) -> Dict[str, Any]:
    return {key: _serialize(value) for key, value in asdict(obj).items()}


def _known_fields(cls: Any, record: Dict[str, Any]) -> Dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {key: value for key, value in record.items() if key in names}


class Confidence(str, Enum):
    """Niveau de confiance des statistiques marché."""

    NONE = "none"
    VERY_LOW = "very_low"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Status(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (Status.COMPLETED, Status.FAILED)


class Step(str, Enum):
    QUEUED = "queued"
    FETCHING_INFLATION = "fetching_inflation"
    FETCHING_COMPETITORS = "fetching_competitors"
    CALCULATING_PRICE = "calculating_price"
    COMPLETE = "complete"


class FetchStatus(str, Enum):
    """Statut de collecte d'une marketplace."""

    SUCCESS = "success"
    NO_DATA = "no_data"
    FAILED = "failed"


@dataclass(frozen=True)
class ProductBaseline:
    """
    Produit de référence soumis par le marchand.

    Immuable une fois créé : les contraintes sont vérifiées dans
    `__post_init__` et lèvent `ValidationError`. La suppression est
    logique (`deleted_at`), jamais physique.
    """

    product_name: str
    category: str
    current_price: float
    current_quantity: int
    cost_per_unit: float
    currency: str
    base_elasticity: Optional[float] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    merchant_id: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    deleted_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if not isinstance(self.product_name, str) or not self.product_name.strip():
            raise ValidationError("Product name is required", field="product_name")
        if self.category not in CATEGORIES:
            raise ValidationError(
                f"Category must be one of: {', '.join(CATEGORIES)}", field="category"
            )
        if isinstance(self.current_price, bool) or not isinstance(self.current_price, (int, float)):
            raise ValidationError("Price must be a number", field="current_price")
        if self.current_price <= 0:
            raise ValidationError("Price must be positive", field="current_price")
        if isinstance(self.current_quantity, bool) or not isinstance(self.current_quantity, int):
            raise ValidationError("Quantity must be an integer", field="current_quantity")
        if self.current_quantity <= 0:
            raise ValidationError("Quantity must be positive", field="current_quantity")
        if isinstance(self.cost_per_unit, bool) or not isinstance(self.cost_per_unit, (int, float)):
            raise ValidationError("Cost must be a number", field="cost_per_unit")
        if self.cost_per_unit <= 0:
            raise ValidationError("Cost must be positive", field="cost_per_unit")
        if self.cost_per_unit >= self.current_price:
            raise ValidationError(
                "Cost per unit must be less than current price", field="cost_per_unit"
            )
        if self.currency not in ALLOWED_CURRENCIES:
            raise ValidationError(
                f"Currency must be one of: {', '.join(ALLOWED_CURRENCIES)}", field="currency"
            )

        if self.base_elasticity is None:
            # frozen : passage par object.__setattr__ pour la valeur dérivée
            object.__setattr__(
                self, "base_elasticity", get_category(self.category).base_elasticity
            )
        elif isinstance(self.base_elasticity, bool) or not isinstance(self.base_elasticity, (int, float)):
            raise ValidationError("Elasticity must be a number", field="base_elasticity")
        elif self.base_elasticity == 0:
            raise ValidationError("Elasticity cannot be zero", field="base_elasticity")

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def unit_margin(self) -> float:
        return self.current_price - self.cost_per_unit

    @property
    def current_profit(self) -> float:
        return self.unit_margin * self.current_quantity

    def soft_deleted(self) -> "ProductBaseline":
        """Retourne une copie marquée comme supprimée."""
        return replace(self, deleted_at=_utcnow())

    def to_record(self) -> Dict[str, Any]:
        return _record_from_dataclass(self)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "ProductBaseline":
        data = _known_fields(cls, record)
        for key in ("created_at", "deleted_at"):
            if key in data:
                data[key] = _parse_datetime(data[key])
        if data.get("created_at") is None:
            data.pop("created_at", None)
        return cls(**data)


@dataclass
class CompetitorProduct:
    """Offre concurrente extraite d'une marketplace."""

    baseline_id: str
    marketplace: str
    product_name: str
    price: float
    similarity_score: float
    price_ratio: float
    rank: int = 0
    url: Optional[str] = None
    currency: Optional[str] = None

    def __post_init__(self) -> None:
        # Le score de similarité reste toujours dans [0, 1]
        self.similarity_score = max(0.0, min(1.0, float(self.similarity_score)))

    def to_record(self) -> Dict[str, Any]:
        return _record_from_dataclass(self)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "CompetitorProduct":
        return cls(**_known_fields(cls, record))


@dataclass
class MarketAggregate:
    """Agrégat par marketplace (plus bas / moyen / plus haut)."""

    baseline_id: str
    marketplace: str
    fetch_status: FetchStatus = FetchStatus.SUCCESS
    lowest_price: Optional[float] = None
    average_price: Optional[float] = None
    highest_price: Optional[float] = None
    products_found: int = 0
    currency: Optional[str] = None

    def __post_init__(self) -> None:
        self.fetch_status = FetchStatus(self.fetch_status)

    def prices(self):
        """Prix non nuls de l'agrégat (liste aplatie pour le fallback)."""
        return [
            price
            for price in (self.lowest_price, self.average_price, self.highest_price)
            if price
        ]

    def to_record(self) -> Dict[str, Any]:
        return _record_from_dataclass(self)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "MarketAggregate":
        return cls(**_known_fields(cls, record))


@dataclass(frozen=True)
class MarketStats:
    lowest: float
    average: float
    highest: float
    confidence: Confidence
    outliers_removed: int = 0
    products_used: int = 0
    source: str = "none"

    @classmethod
    def empty(cls, confidence: Confidence = Confidence.NONE, products_used: int = 0) -> "MarketStats":
        return cls(0.0, 0.0, 0.0, confidence, 0, products_used, "none")

    def to_dict(self) -> Dict[str, Any]:
        return _record_from_dataclass(self)


@dataclass
class PricingResult:
    """Recommandation de prix pour un run du pipeline (append-only)."""

    baseline_id: str
    optimal_price: Optional[float]
    suggested_price: float
    inflation_rate: float
    inflation_adjustment: float
    base_elasticity: float
    calibrated_elasticity: float
    competitor_factor: float
    currency: Optional[str] = None
    market_lowest: Optional[float] = None
    market_average: Optional[float] = None
    market_highest: Optional[float] = None
    position_vs_market: Optional[float] = None
    expected_monthly_profit: Optional[float] = None
    profit_increase_amount: Optional[float] = None
    profit_increase_percent: Optional[float] = None
    has_warning: bool = False
    warning_message: Optional[str] = None
    price_zone: Optional[str] = None
    zone_multiplier: Optional[float] = None
    break_even_multiplier: Optional[float] = None
    decision: Optional[str] = None
    market_confidence: Optional[str] = None
    engine_version: Optional[str] = None
    reasoning: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=_utcnow)

    def to_record(self) -> Dict[str, Any]:
        return _record_from_dataclass(self)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "PricingResult":
        data = _known_fields(cls, record)
        if "created_at" in data:
            data["created_at"] = _parse_datetime(data["created_at"]) or _utcnow()
        return cls(**data)


@dataclass
class ProcessingStatus:
    baseline_id: str
    status: Status = Status.PENDING
    current_step: Step = Step.QUEUED
    error_message: Optional[str] = None
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        self.status = Status(self.status)
        self.current_step = Step(self.current_step)

    def to_record(self) -> Dict[str, Any]:
        return _record_from_dataclass(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "current_step": self.current_step.value,
            "error_message": self.error_message,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "ProcessingStatus":
        data = _known_fields(cls, record)
        if "updated_at" in data:
            data["updated_at"] = _parse_datetime(data["updated_at"]) or _utcnow()
        return cls(**data)


@dataclass(frozen=True)
class InflationSnapshot:
    currency: str
    rate: float
    source: str
    fetched_at: datetime = field(default_factory=_utcnow)

    def to_record(self) -> Dict[str, Any]:
        return _record_from_dataclass(self)
