"""
Configuration déclarative des marketplaces concurrentes.

Chaque marketplace décrit :
- son URL de recherche (la requête est ajoutée encodée),
- ses options de rendu (ScrapingBee : JS, attente, proxy furtif...),
- ses sélecteurs CSS conteneur → titre → prix, essayés dans l'ordre.

Ajouter une marketplace = ajouter une entrée ici, sans toucher au collecteur.
La table est validée au chargement du module.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from urllib.parse import quote


@dataclass(frozen=True)
class RenderOptions:
    """Options transmises au fournisseur de rendu."""
    render_js: bool = True
    wait_ms: int = 3000
    block_resources: bool = False
    block_ads: bool = True
    country_code: str = "us"
    stealth_proxy: bool = False
    wait_for: Optional[str] = None

    def to_params(self) -> Dict[str, str]:
        params = {
            "render_js": str(self.render_js).lower(),
            "wait": str(self.wait_ms),
            "block_resources": str(self.block_resources).lower(),
            "block_ads": str(self.block_ads).lower(),
            "country_code": self.country_code,
            "wait_browser": "load",
        }
        if self.stealth_proxy:
            params["stealth_proxy"] = "true"
        if self.wait_for:
            params["wait_for"] = self.wait_for
        return params


@dataclass(frozen=True)
class SelectorSet:
    containers: Tuple[str, ...]
    title: Tuple[str, ...]
    price: Tuple[str, ...]


@dataclass(frozen=True)
class MarketplaceConfig:
    key: str
    name: str
    currency: str
    search_url: str
    selectors: SelectorSet
    render: RenderOptions = field(default_factory=RenderOptions)

    def build_search_url(self, query: str) -> str:
        return f"{self.search_url}{quote(query)}"


_AMAZON_SELECTORS = SelectorSet(
    containers=(
        '[data-component-type="s-search-result"]',
        '.s-result-item[data-asin]:not([data-asin=""])',
        'div[data-asin]:not([data-asin=""])',
    ),
    title=(
        "h2 a span",
        "h2.a-size-mini span",
        ".a-size-medium.a-text-normal",
        "h2 span.a-text-normal",
    ),
    price=(
        ".a-price-whole",
        "span.a-price > span.a-offscreen",
        'span[data-a-color="price"]',
    ),
)


_MARKETPLACES: List[MarketplaceConfig] = [
    # --- SAR ---
    MarketplaceConfig(
        key="amazon",
        name="Amazon.sa",
        currency="SAR",
        search_url="https://www.amazon.sa/s?k=",
        selectors=_AMAZON_SELECTORS,
        render=RenderOptions(
            wait_ms=6000,
            country_code="sa",
            stealth_proxy=True,
            wait_for="#search,.s-result-list,.s-main-slot,.a-price",
        ),
    ),
    MarketplaceConfig(
        key="noon",
        name="Noon",
        currency="SAR",
        search_url="https://www.noon.com/saudi-en/search?q=",
        selectors=SelectorSet(
            containers=(
                'div[data-qa="product-card"]',
                'div[class*="productCard"]',
                '[data-testid="search-product-item"]',
                'article[data-qa="product-tile"]',
            ),
            title=(
                '[data-qa="product-title"]',
                '[data-qa="product-name"]',
                'span[class*="productTitle"]',
                'h2[class*="title"]',
            ),
            price=(
                '[data-qa="product-price"] span',
                'span[class*="priceNow"]',
                'strong[class*="amount"]',
                '[data-qa="product-price"]',
            ),
        ),
        render=RenderOptions(
            wait_ms=7000,
            country_code="sa",
            stealth_proxy=True,
            wait_for='[data-qa="product-price"],.priceNow,[class*="price"]',
        ),
    ),
    MarketplaceConfig(
        key="extra",
        name="Extra",
        currency="SAR",
        search_url="https://www.extra.com/en-sa/search?q=",
        selectors=SelectorSet(
            containers=(
                'div[data-qa="product-tile"]',
                "div.product-tile",
                'div[data-testid="plp-prod-item"]',
                "div[data-product-code]",
                "article.product-item",
            ),
            title=(
                '[data-qa="product-name"]',
                'a[data-testid="product-name"]',
                ".product-listing__title",
                ".product-name",
            ),
            price=(
                '[data-qa="product-price"]',
                ".c_product-price",
                ".product-price__value",
                'span[class*="price--current"]',
            ),
        ),
        render=RenderOptions(
            wait_ms=8000,
            country_code="sa",
            stealth_proxy=True,
            wait_for=".product-price,.c_product-price,[data-qa=\"product-price\"]",
        ),
    ),
    MarketplaceConfig(
        key="jarir",
        name="Jarir",
        currency="SAR",
        search_url="https://www.jarir.com/sa-en/catalogsearch/result/?q=",
        selectors=SelectorSet(
            containers=(
                ".product-items .product-item",
                "li.product-item",
                "div.product-item-info",
                "div[data-product-sku]",
            ),
            title=(
                "a.product-item-link",
                ".product-item-name a",
                ".product.name a",
                ".product-title",
            ),
            price=(
                ".price-box .price",
                "span[data-price-amount]",
                '[data-price-type="finalPrice"] .price',
                "span.price",
            ),
        ),
        render=RenderOptions(
            wait_ms=6000,
            country_code="sa",
            stealth_proxy=True,
            wait_for=".price-box .price,span[data-price-amount],.product-price",
        ),
    ),
    # --- USD ---
    MarketplaceConfig(
        key="amazon-us",
        name="Amazon.com",
        currency="USD",
        search_url="https://www.amazon.com/s?k=",
        selectors=_AMAZON_SELECTORS,
        render=RenderOptions(wait_ms=3000, country_code="us"),
    ),
    MarketplaceConfig(
        key="walmart",
        name="Walmart",
        currency="USD",
        search_url="https://www.walmart.com/search?q=",
        selectors=SelectorSet(
            containers=(
                "div[data-item-id]",
                '[data-testid="list-view"]',
                '[data-testid="item-stack"]',
            ),
            title=(
                'span[data-automation-id="product-title"]',
                "a[link-identifier]",
            ),
            price=(
                'span[itemprop="price"]',
                'div[data-automation-id="product-price"] span',
                '[data-automation-id="product-price"]',
            ),
        ),
        render=RenderOptions(wait_ms=3500, country_code="us"),
    ),
    MarketplaceConfig(
        key="ebay",
        name="eBay",
        currency="USD",
        search_url="https://www.ebay.com/sch/i.html?_nkw=",
        selectors=SelectorSet(
            containers=("li.s-item", "div.s-item__wrapper", "div.srp-results li"),
            title=("div.s-item__title", "h3.s-item__title", ".s-item__title span"),
            price=("span.s-item__price", ".s-item__price"),
        ),
        render=RenderOptions(wait_ms=3000, country_code="us"),
    ),
    MarketplaceConfig(
        key="target",
        name="Target",
        currency="USD",
        search_url="https://www.target.com/s?searchTerm=",
        selectors=SelectorSet(
            containers=(
                'div[data-test="@web/site-top-of-funnel/ProductCardWrapper"]',
                'div[data-test="product-card"]',
                'div[class*="ProductCard"]',
            ),
            title=(
                'a[data-test="product-title"]',
                '[data-test="product-title"]',
                "h3 a",
            ),
            price=(
                'span[data-test="current-price"]',
                'span[data-test="product-price"]',
            ),
        ),
        render=RenderOptions(wait_ms=3500, country_code="us"),
    ),
]


def _build_marketplace_table(configs: List[MarketplaceConfig]) -> Dict[str, MarketplaceConfig]:
    table: Dict[str, MarketplaceConfig] = {}
    for config in configs:
        if config.key in table:
            raise ValueError(f"Duplicate marketplace key: {config.key}")
        if not config.search_url.startswith("https://"):
            raise ValueError(f"Marketplace {config.key} must use an https search URL")
        selectors = config.selectors
        if not (selectors.containers and selectors.title and selectors.price):
            raise ValueError(f"Marketplace {config.key} needs container, title and price selectors")
        table[config.key] = config
    return table


MARKETPLACES: Dict[str, MarketplaceConfig] = _build_marketplace_table(_MARKETPLACES)


def get_marketplaces_for_currency(
    currency: str,
    disabled: Optional[List[str]] = None,
) -> List[MarketplaceConfig]:
    """
    Marketplaces interrogées pour une devise (ordre de déclaration).

    Raises:
        ValueError: Si aucune marketplace n'est configurée pour la devise
    """
    disabled_keys = set(disabled or [])
    configs = [
        config for config in MARKETPLACES.values()
        if config.currency == currency and config.key not in disabled_keys
    ]
    if not configs and not any(c.currency == currency for c in MARKETPLACES.values()):
        raise ValueError(f"No marketplace configured for currency {currency}")
    return configs
