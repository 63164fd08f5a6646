"""
Fournisseur de contenu rendu (JS exécuté) pour les pages marketplaces.

Le collecteur marketplace ne dépend que de l'interface
`fetch_rendered_html(url, options) -> html` ; ScrapingBee en est
l'implémentation par défaut (clé `SCRAPINGBEE_API_KEY`).
"""

import logging
from typing import Any, Optional, Protocol

from pricing_engine.exceptions import UpstreamFetchError

from ..config.api_keys import API_SERVICES, require_api_key
from ..config.marketplace_config import RenderOptions
from ..config.settings import Settings
from .base_collector import BaseCollector
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

SCRAPINGBEE_ENDPOINT = "https://app.scrapingbee.com/api/v1/"


class RenderedContentProvider(Protocol):
    async def fetch_rendered_html(
        self, url: str, options: Optional[RenderOptions] = None, source: Optional[str] = None
    ) -> str:
        ...


class ScrapingBeeRenderer(BaseCollector):
    """Rendu des pages via l'API ScrapingBee (JS, proxy furtif, géolocalisation)."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        rate_limiter: Optional[RateLimiter] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or Settings.from_env()
        api_key = api_key or settings.scrapingbee_api_key
        if not api_key:
            try:
                api_key = require_api_key(API_SERVICES.SCRAPINGBEE)
            except ValueError as e:
                # Clé absente : échec du fournisseur de rendu
                raise UpstreamFetchError(str(e)) from e
        super().__init__(
            source_name="scrapingbee",
            api_key=api_key,
            rate_limiter=rate_limiter,
            settings=settings,
        )

    async def fetch_rendered_html(
        self,
        url: str,
        options: Optional[RenderOptions] = None,
        source: Optional[str] = None,
    ) -> str:
        """
        Retourne le HTML rendu de `url`.

        Raises:
            UpstreamFetchError: Erreur HTTP / réseau / timeout ou page vide
        """
        return await self.collect(url=url, options=options or RenderOptions(), source=source)

    async def _fetch_data(self, url: str, options: RenderOptions, source: Optional[str] = None) -> str:
        params = {"api_key": self.api_key, "url": url, **options.to_params()}
        logger.debug(f"Rendering {url} for {source or 'unknown'} (wait={options.wait_ms}ms)")
        return await self._make_request(
            "GET",
            SCRAPINGBEE_ENDPOINT,
            params=params,
            timeout=self.settings.marketplace_timeout_seconds,
        )

    def _normalize(self, raw_response: Any, **kwargs) -> str:
        return raw_response or ""

    def _validate(self, data: Any) -> bool:
        return isinstance(data, str) and bool(data.strip())
