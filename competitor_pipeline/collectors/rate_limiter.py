"""
Rate limiter des appels au fournisseur de rendu.

Sliding window : une file de timestamps par source, nettoyée à chaque
appel. Plusieurs fenêtres (minute, heure, jour) peuvent se cumuler ;
la plus restrictive fixe le temps d'attente.
"""

import asyncio
import time
import logging
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass
class RateLimitConfig:
    """
    Quotas d'une source. Une limite à None n'est pas appliquée.
    """
    requests_per_minute: Optional[int] = None
    requests_per_hour: Optional[int] = None
    requests_per_day: Optional[int] = None

    def __post_init__(self):
        for name in ("requests_per_minute", "requests_per_hour", "requests_per_day"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ValueError(f"{name} must be positive")

    def windows(self) -> List[Tuple[int, float]]:
        """Liste (limite, durée de fenêtre en secondes) des quotas actifs."""
        pairs = [
            (self.requests_per_minute, 60.0),
            (self.requests_per_hour, 3600.0),
            (self.requests_per_day, 86400.0),
        ]
        return [(limit, span) for limit, span in pairs if limit]


class RateLimiter:
    """
    Rate limiter asynchrone (sliding window).

    Les marketplaces partagent la même clé ScrapingBee : un seul limiter
    pour le fournisseur, la source sert uniquement aux statistiques.
    """

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        source_name: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.source_name = source_name or "default"
        self._clock = clock
        self._requests: Deque[float] = deque()
        self._per_source: Dict[str, int] = defaultdict(int)
        self._lock = asyncio.Lock()

    def _prune(self, now: float) -> None:
        if not self.config:
            self._requests.clear()
            return
        horizon = max((span for _, span in self.config.windows()), default=0.0)
        while self._requests and now - self._requests[0] >= horizon:
            self._requests.popleft()

    def wait_time(self) -> float:
        """Temps d'attente (secondes) avant la prochaine requête autorisée."""
        if not self.config:
            return 0.0
        now = self._clock()
        self._prune(now)
        waits = []
        for limit, span in self.config.windows():
            in_window = [t for t in self._requests if now - t < span]
            if len(in_window) >= limit:
                waits.append(span - (now - in_window[0]))
        return max(waits) if waits else 0.0

    async def acquire(self, source_name: Optional[str] = None) -> None:
        """Attend si un quota est atteint, puis enregistre la requête."""
        source = source_name or self.source_name
        async with self._lock:
            wait = self.wait_time()
            while wait > 0:
                logger.info(f"Rate limit reached for '{self.source_name}' ({source}), waiting {wait:.2f}s")
                await asyncio.sleep(wait)
                wait = self.wait_time()
            self._requests.append(self._clock())
            self._per_source[source] += 1

    def get_stats(self) -> Dict[str, int]:
        now = self._clock()
        return {
            "requests_last_minute": sum(1 for t in self._requests if now - t < 60),
            "requests_last_hour": sum(1 for t in self._requests if now - t < 3600),
            **{f"requests_{source}": count for source, count in self._per_source.items()},
        }
