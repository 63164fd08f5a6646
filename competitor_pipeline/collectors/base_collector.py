"""
Classe abstraite de base pour les collecteurs HTTP.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import aiohttp

from pricing_engine.exceptions import UpstreamFetchError

from ..config.settings import Settings
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class BaseCollector(ABC):
    """
    Classe abstraite pour les collecteurs de pages / API externes.

    Cette classe définit l'interface commune et gère :
    - la session aiohttp (context manager async),
    - le rate limiting,
    - le timeout explicite de chaque requête,
    - la traduction des erreurs transport en `UpstreamFetchError`.

    Aucun retry à ce niveau : une erreur est terminale pour l'appel,
    c'est l'orchestrateur qui décide de réessayer.
    """

    def __init__(
        self,
        source_name: str,
        api_key: Optional[str] = None,
        rate_limiter: Optional[RateLimiter] = None,
        settings: Optional[Settings] = None
    ):
        """
        Initialise le collecteur.

        Args:
            source_name: Nom de la source (ex: 'scrapingbee')
            api_key: Clé API pour cette source
            rate_limiter: Instance de RateLimiter
            settings: Configuration globale
        """
        self.source_name = source_name
        self.api_key = api_key
        self.rate_limiter = rate_limiter
        self.settings = settings or Settings.from_env()
        self.session: Optional[aiohttp.ClientSession] = None
        self._owns_session = False

        logger.info(f"Initialized collector: {source_name}")

    async def __aenter__(self):
        """Context manager entry."""
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()
            self._owns_session = True
        return self.session

    async def close(self) -> None:
        if self.session and self._owns_session and not self.session.closed:
            await self.session.close()
        self.session = None
        self._owns_session = False

    async def collect(self, **kwargs) -> Any:
        """
        Récupère puis normalise une ressource.

        Raises:
            UpstreamFetchError: Erreur HTTP, réseau ou timeout
        """
        if self.rate_limiter:
            await self.rate_limiter.acquire(kwargs.get("source"))

        try:
            raw = await self._fetch_data(**kwargs)
        except aiohttp.ClientResponseError as e:
            if e.status == 429:
                logger.error(f"Rate limit exceeded for {self.source_name}")
            elif e.status >= 500:
                logger.error(f"Server error for {self.source_name}: {e.status}")
            else:
                logger.error(f"HTTP error for {self.source_name}: {e.status} - {e.message}")
            raise UpstreamFetchError(
                f"HTTP {e.status} from {self.source_name}: {e.message}",
                marketplace=kwargs.get("source"),
                status=e.status,
            ) from e
        except asyncio.TimeoutError as e:
            logger.error(f"Timeout for {self.source_name}")
            raise UpstreamFetchError(
                f"Timeout from {self.source_name}", marketplace=kwargs.get("source")
            ) from e
        except aiohttp.ClientError as e:
            logger.error(f"Network error for {self.source_name}: {e}")
            raise UpstreamFetchError(
                f"Network error from {self.source_name}: {e}", marketplace=kwargs.get("source")
            ) from e

        result = self._normalize(raw, **kwargs)
        if not self._validate(result):
            raise UpstreamFetchError(
                f"Invalid response from {self.source_name}", marketplace=kwargs.get("source")
            )
        return result

    @abstractmethod
    async def _fetch_data(self, **kwargs) -> Any:
        """Récupère la réponse brute."""

    @abstractmethod
    def _normalize(self, raw_response: Any, **kwargs) -> Any:
        """Transforme la réponse brute."""

    def _validate(self, data: Any) -> bool:
        return data is not None

    async def _make_request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: float = 30,
    ) -> str:
        """
        Effectue une requête HTTP et retourne le corps texte.

        Raises:
            aiohttp.ClientResponseError: Pour erreurs HTTP
            aiohttp.ClientError: Pour erreurs réseau
            asyncio.TimeoutError: Au-delà de `timeout` secondes
        """
        session = self._ensure_session()
        timeout_obj = aiohttp.ClientTimeout(total=timeout)

        async with session.request(
            method=method,
            url=url,
            headers=headers,
            params=params,
            timeout=timeout_obj,
        ) as response:
            if response.status >= 400:
                body = await response.text()
                logger.error(f"HTTP {response.status} for {self.source_name}: {body[:200]}")
            response.raise_for_status()
            return await response.text()
