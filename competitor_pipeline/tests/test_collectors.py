"""
Tests unitaires pour les collecteurs (base HTTP, rendu ScrapingBee, marketplaces).
"""

import asyncio
from unittest.mock import AsyncMock, Mock, patch

import aiohttp
import pytest

from competitor_pipeline.collectors.base_collector import BaseCollector
from competitor_pipeline.collectors.marketplace_collector import (
    MarketplaceCollector,
    ScrapedProduct,
    rank_products,
)
from competitor_pipeline.collectors.render_client import SCRAPINGBEE_ENDPOINT, ScrapingBeeRenderer
from competitor_pipeline.config.settings import Settings
from pricing_engine.exceptions import UpstreamFetchError
from pricing_engine.models.entities import FetchStatus, ProductBaseline


class ConcreteCollector(BaseCollector):
    """Collecteur minimal : la réponse brute est fournie par le test."""

    def __init__(self, fetch, **kwargs):
        super().__init__(source_name="test_source", **kwargs)
        self._fetch = fetch

    async def _fetch_data(self, **kwargs):
        return await self._fetch(**kwargs)

    def _normalize(self, raw_response, **kwargs):
        return raw_response


class TestBaseCollector:
    """Tests pour BaseCollector."""

    @pytest.mark.asyncio
    async def test_context_manager(self, test_settings, mock_rate_limiter):
        """Session aiohttp ouverte puis fermée (async with)."""
        collector = ConcreteCollector(AsyncMock(return_value="ok"), settings=test_settings)
        async with collector:
            assert collector.session is not None
            session = collector.session
        assert session.closed
        assert collector.session is None

    @pytest.mark.asyncio
    async def test_rate_limiting(self, test_settings, mock_rate_limiter):
        """Le rate limiter est appelé avant chaque requête."""
        collector = ConcreteCollector(
            AsyncMock(return_value="ok"), settings=test_settings, rate_limiter=mock_rate_limiter
        )
        result = await collector.collect(source="amazon")

        assert result == "ok"
        mock_rate_limiter.acquire.assert_called_once_with("amazon")

    @pytest.mark.asyncio
    async def test_http_error_mapped(self, test_settings):
        """Erreur HTTP -> UpstreamFetchError avec le statut."""
        error = aiohttp.ClientResponseError(
            request_info=Mock(), history=(), status=503, message="Service Unavailable"
        )
        collector = ConcreteCollector(AsyncMock(side_effect=error), settings=test_settings)

        with pytest.raises(UpstreamFetchError) as exc_info:
            await collector.collect(source="noon")

        assert exc_info.value.status == 503
        assert exc_info.value.marketplace == "noon"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        asyncio.TimeoutError(),
        aiohttp.ClientConnectionError("connection reset"),
    ])
    async def test_transport_errors_mapped(self, test_settings, error):
        collector = ConcreteCollector(AsyncMock(side_effect=error), settings=test_settings)
        with pytest.raises(UpstreamFetchError):
            await collector.collect(source="walmart")

    @pytest.mark.asyncio
    async def test_invalid_response(self, test_settings):
        collector = ConcreteCollector(AsyncMock(return_value=None), settings=test_settings)
        with pytest.raises(UpstreamFetchError, match="Invalid response"):
            await collector.collect()

    @pytest.mark.asyncio
    async def test_no_retry_at_collector_level(self, test_settings):
        """Une seule tentative : le retry appartient à l'orchestrateur."""
        fetch = AsyncMock(side_effect=asyncio.TimeoutError())
        collector = ConcreteCollector(fetch, settings=test_settings)
        with pytest.raises(UpstreamFetchError):
            await collector.collect()
        assert fetch.call_count == 1


class TestScrapingBeeRenderer:
    """Tests pour le fournisseur de rendu."""

    def test_missing_api_key(self, monkeypatch):
        """Clé absente : UpstreamFetchError (l'orchestrateur dégrade au lieu d'échouer)."""
        monkeypatch.delenv("SCRAPINGBEE_API_KEY", raising=False)
        settings = Settings(supabase_url="", supabase_key="")
        with pytest.raises(UpstreamFetchError, match="SCRAPINGBEE_API_KEY"):
            ScrapingBeeRenderer(settings=settings)

    def test_api_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("SCRAPINGBEE_API_KEY", "env-key")
        renderer = ScrapingBeeRenderer(settings=Settings(supabase_url="", supabase_key=""))
        assert renderer.api_key == "env-key"

    @pytest.mark.asyncio
    async def test_render_params(self, test_settings, amazon_sa):
        """Clé, URL et options de rendu transmises à l'API."""
        renderer = ScrapingBeeRenderer(settings=test_settings)
        with patch.object(renderer, "_make_request", AsyncMock(return_value="<html>ok</html>")) as request:
            html = await renderer.fetch_rendered_html(
                "https://www.amazon.sa/s?k=iphone", amazon_sa.render, source="amazon"
            )

        assert html == "<html>ok</html>"
        args, kwargs = request.call_args
        assert args == ("GET", SCRAPINGBEE_ENDPOINT)
        params = kwargs["params"]
        assert params["api_key"] == "test-key"
        assert params["url"] == "https://www.amazon.sa/s?k=iphone"
        assert params["render_js"] == "true"
        assert params["country_code"] == "sa"
        assert params["stealth_proxy"] == "true"
        assert params["wait"] == "6000"
        assert kwargs["timeout"] == test_settings.marketplace_timeout_seconds

    @pytest.mark.asyncio
    async def test_empty_page_is_error(self, test_settings):
        renderer = ScrapingBeeRenderer(settings=test_settings)
        with patch.object(renderer, "_make_request", AsyncMock(return_value="   ")):
            with pytest.raises(UpstreamFetchError):
                await renderer.fetch_rendered_html("https://www.noon.com/saudi-en/search?q=x")


class SlowRenderer:
    async def fetch_rendered_html(self, url, options=None, source=None):
        await asyncio.sleep(5)
        return "<html></html>"


class TestMarketplaceCollector:
    """Tests pour l'Adapter marketplaces (acceptation, bulkhead)."""

    @pytest.mark.asyncio
    async def test_accepts_similar_products(
        self, test_settings, iphone_baseline, amazon_sa, amazon_iphone_page, fake_renderer_factory
    ):
        """Accessoire et autre génération rejetés, tri par similarité."""
        renderer = fake_renderer_factory({"amazon": amazon_iphone_page})
        collector = MarketplaceCollector(renderer, test_settings, marketplaces=[amazon_sa])

        result = await collector.collect_marketplace(amazon_sa, iphone_baseline)

        assert result.status == FetchStatus.SUCCESS
        assert [p.price for p in result.products] == [4399.0, 4450.0, 4299.0]
        assert result.products[0].similarity == 1.0
        assert all(0.3 <= p.price_ratio <= 3.0 for p in result.products)
        assert result.queries_tried == 1
        assert result.elapsed_seconds >= 0

    @pytest.mark.asyncio
    async def test_price_band(
        self, test_settings, iphone_baseline, amazon_sa, amazon_page_builder, fake_renderer_factory
    ):
        """Prix hors [0.3x, 3x] du prix baseline rejeté."""
        page = amazon_page_builder([
            ("Apple iPhone 15 Pro 256GB", "19,999.00"),
            ("Apple iPhone 15 Pro 256GB", "999.00"),
        ])
        collector = MarketplaceCollector(fake_renderer_factory({"amazon": page}), test_settings)

        result = await collector.collect_marketplace(amazon_sa, iphone_baseline)

        assert result.status == FetchStatus.NO_DATA
        assert result.products == []

    @pytest.mark.asyncio
    async def test_no_data_tries_all_queries(
        self, test_settings, iphone_baseline, amazon_sa, fake_renderer_factory
    ):
        renderer = fake_renderer_factory()
        collector = MarketplaceCollector(renderer, test_settings)

        result = await collector.collect_marketplace(amazon_sa, iphone_baseline)

        assert result.status == FetchStatus.NO_DATA
        assert len(renderer.calls) == 2
        assert renderer.calls[0]["url"] == "https://www.amazon.sa/s?k=Apple%20iPhone%2015%20Pro%20256GB"

    @pytest.mark.asyncio
    async def test_fetch_errors_mark_failed(
        self, test_settings, iphone_baseline, amazon_sa, upstream_error, fake_renderer_factory
    ):
        collector = MarketplaceCollector(fake_renderer_factory({"amazon": upstream_error}), test_settings)

        result = await collector.collect_marketplace(amazon_sa, iphone_baseline)

        assert result.status == FetchStatus.FAILED
        assert "HTTP 500" in result.error

    @pytest.mark.asyncio
    async def test_blocked_page_marks_failed(
        self, test_settings, iphone_baseline, amazon_sa, fake_renderer_factory
    ):
        page = "<html><title>Robot Check</title>Type the captcha characters</html>"
        collector = MarketplaceCollector(fake_renderer_factory({"amazon": page}), test_settings)

        result = await collector.collect_marketplace(amazon_sa, iphone_baseline)

        assert result.status == FetchStatus.FAILED
        assert "captcha" in result.error

    @pytest.mark.asyncio
    async def test_timeout(self, iphone_baseline, amazon_sa):
        """Timeout explicite par marketplace."""
        settings = Settings(supabase_url="", supabase_key="", marketplace_timeout_seconds=0.05)
        collector = MarketplaceCollector(SlowRenderer(), settings)

        result = await collector.collect_marketplace(amazon_sa, iphone_baseline)

        assert result.status == FetchStatus.FAILED
        assert "Timeout" in result.error

    @pytest.mark.asyncio
    async def test_bulkhead(
        self, test_settings, iphone_baseline, amazon_sa, noon, amazon_iphone_page, fake_renderer_factory
    ):
        """L'échec d'une marketplace n'affecte pas les autres."""
        renderer = fake_renderer_factory({
            "amazon": amazon_iphone_page,
            "noon": RuntimeError("parser exploded"),
        })
        collector = MarketplaceCollector(renderer, test_settings, marketplaces=[amazon_sa, noon])

        results = await collector.collect(iphone_baseline)

        by_key = {r.marketplace: r for r in results}
        assert by_key["amazon"].status == FetchStatus.SUCCESS
        assert by_key["noon"].status == FetchStatus.FAILED
        assert by_key["noon"].error == "parser exploded"

    @pytest.mark.asyncio
    async def test_marketplaces_for_currency(self, test_settings, iphone_baseline, fake_renderer_factory):
        collector = MarketplaceCollector(fake_renderer_factory(), test_settings)

        results = await collector.collect(iphone_baseline)

        assert [r.marketplace for r in results] == ["amazon", "noon", "extra", "jarir"]
        assert all(r.status == FetchStatus.NO_DATA for r in results)

    @pytest.mark.asyncio
    async def test_accessory_baseline_keeps_accessories(
        self, test_settings, amazon_sa, amazon_page_builder, fake_renderer_factory
    ):
        baseline = ProductBaseline(
            product_name="Silicone Case for iPhone 15 Pro",
            category="Electronics & Technology",
            current_price=120.0,
            current_quantity=200,
            cost_per_unit=40.0,
            currency="SAR",
        )
        page = amazon_page_builder([("Silicone Case for iPhone 15 Pro", "99.00")])
        collector = MarketplaceCollector(fake_renderer_factory({"amazon": page}), test_settings)

        result = await collector.collect_marketplace(amazon_sa, baseline)

        assert result.status == FetchStatus.SUCCESS
        assert len(result.products) == 1

    @pytest.mark.asyncio
    async def test_cheap_baseline_gets_competitors(
        self, test_settings, walmart, walmart_page_builder, fake_renderer_factory
    ):
        """Produit à 25 USD : toute la bande [0.3x, 3x] reste atteignable."""
        baseline = ProductBaseline(
            product_name="Nutella Hazelnut Spread 750g",
            category="Food & Beverages",
            current_price=25.0,
            current_quantity=300,
            cost_per_unit=15.0,
            currency="USD",
        )
        page = walmart_page_builder([
            ("Nutella Hazelnut Spread 750g", "22.99"),
            ("Nutella Hazelnut Spread (750g)", "24.49"),
            ("Nutella Hazelnut Spread 750g - Family Size", "26.00"),
        ])
        collector = MarketplaceCollector(fake_renderer_factory({"walmart": page}), test_settings)

        result = await collector.collect_marketplace(walmart, baseline)

        assert result.status == FetchStatus.SUCCESS
        assert sorted(p.price for p in result.products) == [22.99, 24.49, 26.0]

    def test_rank_products_dedupes(self):
        products = [
            ScrapedProduct("Dyson V15 Detect", 2499.0, 0.9, 1.0),
            ScrapedProduct("Dyson V15 Detect!", 2499.0, 0.95, 1.0),
            ScrapedProduct("Dyson V15", 2299.0, 0.8, 0.9),
        ]
        ranked = rank_products(products)
        assert [p.similarity for p in ranked] == [0.95, 0.8]
