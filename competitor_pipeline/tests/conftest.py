"""
Fixtures partagées pour les tests.
"""

import sys
from pathlib import Path
from typing import Dict, List, Optional
from unittest.mock import AsyncMock

import pytest

# Racine du projet dans le path (exécution sans installation)
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from competitor_pipeline.config.marketplace_config import MARKETPLACES, RenderOptions
from competitor_pipeline.config.settings import Settings
from pricing_engine.exceptions import UpstreamFetchError
from pricing_engine.models.entities import ProductBaseline


# Settings de test (pas de lecture d'environnement)
@pytest.fixture
def test_settings():
    """Settings déterministes pour les tests."""
    return Settings(
        supabase_url="",
        supabase_key="",
        scrapingbee_api_key="test-key",
        marketplace_timeout_seconds=2.0,
        max_concurrent_marketplaces=2,
        match_threshold=0.70,
    )


# Mock Rate Limiter
@pytest.fixture
def mock_rate_limiter():
    """Mock du rate limiter."""
    limiter = AsyncMock()
    limiter.acquire = AsyncMock(return_value=None)
    return limiter


@pytest.fixture
def iphone_baseline():
    """Baseline électronique (SAR)."""
    return ProductBaseline(
        product_name="Apple iPhone 15 Pro 256GB",
        category="Electronics & Technology",
        current_price=4500.0,
        current_quantity=40,
        cost_per_unit=3600.0,
        currency="SAR",
        id="baseline-iphone",
    )


@pytest.fixture
def amazon_sa():
    return MARKETPLACES["amazon"]


@pytest.fixture
def noon():
    return MARKETPLACES["noon"]


def amazon_result(title: str, price: str, href: str = "/dp/B0TEST") -> str:
    """Bloc résultat Amazon minimal (sélecteurs réels)."""
    return (
        '<div data-component-type="s-search-result" data-asin="B0TEST">'
        f'<h2><a href="{href}"><span>{title}</span></a></h2>'
        f'<span class="a-price"><span class="a-offscreen">SAR {price}</span></span>'
        "</div>"
    )


def amazon_page(results: List[str]) -> str:
    return f"<html><body><div class='s-main-slot'>{''.join(results)}</div></body></html>"


@pytest.fixture
def amazon_page_builder():
    """Construit une page Amazon à partir de tuples (titre, prix[, href])."""
    def build(items):
        return amazon_page([amazon_result(*item) for item in items])
    return build


@pytest.fixture
def amazon_iphone_page():
    """Page Amazon.sa : 3 offres pertinentes, 1 accessoire, 1 autre génération."""
    return amazon_page([
        amazon_result("Apple iPhone 15 Pro 256GB", "4,399.00"),
        amazon_result("Apple iPhone 15 Pro (256GB) - Natural Titanium", "4,299.00", "/dp/B0SECOND"),
        amazon_result("Apple iPhone 15 Pro 256 GB", "4,450.00", "https://www.amazon.sa/dp/B0THIRD"),
        amazon_result("Case for Apple iPhone 15 Pro 256GB", "99.00"),
        amazon_result("Apple iPhone 14 Pro 256GB", "3,899.00"),
    ])


def walmart_result(title: str, price: str) -> str:
    """Bloc résultat Walmart minimal (sélecteurs réels)."""
    return (
        '<div data-item-id="W0TEST">'
        f'<span data-automation-id="product-title">{title}</span>'
        f'<div data-automation-id="product-price"><span>$ {price}</span></div>'
        "</div>"
    )


@pytest.fixture
def walmart():
    return MARKETPLACES["walmart"]


@pytest.fixture
def walmart_page_builder():
    """Construit une page Walmart à partir de tuples (titre, prix)."""
    def build(items):
        results = "".join(walmart_result(*item) for item in items)
        return f"<html><body><main>{results}</main></body></html>"
    return build


class FakeRenderer:
    """
    Fournisseur de rendu en mémoire.

    `pages` : clé marketplace -> HTML (ou exception à lever).
    """

    def __init__(self, pages: Optional[Dict[str, object]] = None, default: str = "<html></html>"):
        self.pages = pages or {}
        self.default = default
        self.calls: List[Dict[str, object]] = []

    async def fetch_rendered_html(self, url, options: Optional[RenderOptions] = None, source=None):
        self.calls.append({"url": url, "options": options, "source": source})
        page = self.pages.get(source, self.default)
        if isinstance(page, Exception):
            raise page
        return page


@pytest.fixture
def fake_renderer_factory():
    return FakeRenderer


@pytest.fixture
def upstream_error():
    return UpstreamFetchError("HTTP 500 from scrapingbee", marketplace="test", status=500)
