"""
Parseur de pages de résultats marketplace (HTML rendu).

Ordre d'extraction :
1. sélecteurs CSS conteneur → titre → prix de la marketplace,
2. données structurées (JSON-LD Product / ItemList, OpenGraph),
3. repli texte : lignes de la page portant un prix libellé dans la devise,
   rattachées à la ligne titre la plus proche au-dessus.

Le parseur ne filtre pas sur la similarité : il retourne des annonces
brutes, le collecteur décide de leur acceptation.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from bs4.element import Tag
from soupsieve import SelectorSyntaxError

from competitor_pipeline.config.marketplace_config import MarketplaceConfig
from competitor_pipeline.normalizers.price_extractor import MIN_PRICE, extract_price, has_currency_price

logger = logging.getLogger(__name__)

MAX_CONTAINERS = 50

_GARBAGE_TITLES = re.compile(
    r"^(?:about\s+this|learn\s+more|why\s+this|sponsored|ad$|see\s+more|show\s+more|"
    r"view\s+all|filter|sort\s+by|results?\s+for|shopping|compare|\d+\s+results?|sign\s+in|menu)",
    re.IGNORECASE,
)

_BLOCK_MARKERS = ("captcha", "robot check", "access denied", "are you a human")


@dataclass
class RawListing:
    """Annonce extraite d'une page, avant contrôle de similarité."""
    title: str
    price: float
    url: Optional[str] = None
    method: str = "selectors"


def _select_all(root: Any, selectors: Sequence[str]) -> List[Tag]:
    for selector in selectors:
        try:
            found = root.select(selector)
        except SelectorSyntaxError:
            # Sélecteur non supporté par soupsieve
            logger.debug(f"Invalid selector skipped: {selector}")
            continue
        if found:
            return found
    return []


def _select_one(root: Tag, selectors: Sequence[str]) -> Optional[Tag]:
    for selector in selectors:
        try:
            found = root.select_one(selector)
        except SelectorSyntaxError:
            continue
        if found is not None:
            return found
    return None


def looks_like_title(line: str) -> bool:
    """Heuristique : une ligne de texte qui ressemble à un titre produit."""
    line = line.strip()
    if len(line) < 15 or len(line) > 200:
        return False
    if line[0].isdigit() or re.match(r"^(?:from\s|SAR|SR|\$)", line, re.IGNORECASE):
        return False
    if _GARBAGE_TITLES.match(line):
        return False
    return bool(re.search(r"[a-zA-Z\u0600-\u06ff]", line))


def is_blocked_page(html: str) -> bool:
    """Page de blocage (CAPTCHA, vérification robot) au lieu de résultats."""
    lower = html[:20000].lower()
    return any(marker in lower for marker in _BLOCK_MARKERS) and "price" not in lower


class ListingParser:
    """Extrait les couples (titre, prix) d'une page de recherche."""

    def __init__(self, config: MarketplaceConfig, max_containers: int = MAX_CONTAINERS):
        self.config = config
        self.max_containers = max_containers

    def parse(
        self,
        html: str,
        product_name: Optional[str] = None,
        min_price: float = MIN_PRICE,
    ) -> List[RawListing]:
        """
        Annonces brutes de la page.

        `min_price` : plancher des prix lus dans le texte (le collecteur le
        rapporte au prix baseline pour les produits bon marché).
        """
        if not html:
            return []
        soup = BeautifulSoup(html, "html.parser")

        listings = self._parse_containers(soup, product_name, min_price)
        if listings:
            return listings

        listings = self._parse_structured_data(soup)
        if listings:
            logger.info(f"{self.config.key}: {len(listings)} listings from structured data")
            return listings

        listings = self._parse_text(soup, product_name, min_price)
        if listings:
            logger.info(f"{self.config.key}: {len(listings)} listings from text fallback")
        return listings

    def _absolute_url(self, href: Optional[str]) -> Optional[str]:
        if not href:
            return None
        return href if href.startswith("http") else urljoin(self.config.search_url, href)

    def _parse_containers(
        self, soup: BeautifulSoup, product_name: Optional[str], min_price: float
    ) -> List[RawListing]:
        selectors = self.config.selectors
        containers = _select_all(soup, selectors.containers)
        if not containers:
            logger.info(f"{self.config.key}: no containers matched")
            return []

        listings: List[RawListing] = []
        for container in containers[: self.max_containers]:
            title_el = _select_one(container, selectors.title) or container.select_one(
                "h1, h2, h3, h4, a[title]"
            )
            title = title_el.get_text(" ", strip=True) if title_el else ""
            if not title and title_el is not None and title_el.get("title"):
                title = title_el["title"].strip()
            if len(title) < 5:
                continue

            price_match = None
            method = "selectors"
            price_el = _select_one(container, selectors.price)
            if price_el is not None:
                price_match = extract_price(
                    price_el.get_text(" ", strip=True),
                    self.config.currency,
                    product_name,
                    min_price=min_price,
                )
            if price_match is None:
                # Repli : prix libellé dans la devise n'importe où dans le conteneur
                method = "container_text"
                price_match = extract_price(
                    container.get_text(" ", strip=True),
                    self.config.currency,
                    product_name,
                    min_price=min_price,
                    allow_generic=False,
                )
            if price_match is None:
                continue

            link = container if container.name == "a" else container.select_one("a[href]")
            listings.append(RawListing(
                title=title,
                price=price_match.price,
                url=self._absolute_url(link.get("href") if link is not None else None),
                method=method,
            ))
        return listings

    def _parse_structured_data(self, soup: BeautifulSoup) -> List[RawListing]:
        listings: List[RawListing] = []
        for script in soup.select('script[type="application/ld+json"]'):
            raw = (script.string or script.get_text() or "").strip()
            if not raw:
                continue
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                continue
            listings.extend(self._products_from_json_ld(data))

        if listings:
            return listings[: self.max_containers]

        og_price = soup.select_one(
            'meta[property="og:price:amount"], meta[property="product:price:amount"]'
        )
        og_title = soup.select_one('meta[property="og:title"]')
        if og_price is not None and og_title is not None:
            try:
                price = float((og_price.get("content") or "").replace(",", ""))
            except ValueError:
                return []
            title = (og_title.get("content") or "").strip()
            if price > 0 and title:
                return [RawListing(title=title, price=price, method="opengraph")]
        return []

    def _products_from_json_ld(self, data: Any) -> Iterable[RawListing]:
        if isinstance(data, list):
            for item in data:
                yield from self._products_from_json_ld(item)
            return
        if not isinstance(data, dict):
            return

        if "@graph" in data:
            yield from self._products_from_json_ld(data["@graph"])
        if data.get("@type") == "ItemList":
            for element in data.get("itemListElement") or []:
                if isinstance(element, dict):
                    yield from self._products_from_json_ld(element.get("item", element))
        if data.get("@type") != "Product":
            return

        offers = data.get("offers") or {}
        if isinstance(offers, list):
            offers = offers[0] if offers else {}
        if not isinstance(offers, dict):
            return
        currency = offers.get("priceCurrency")
        if currency and currency != self.config.currency:
            return
        raw_price = offers.get("price", offers.get("lowPrice"))
        try:
            price = float(str(raw_price).replace(",", ""))
        except (TypeError, ValueError):
            return
        name = data.get("name")
        if name and price > 0:
            yield RawListing(
                title=str(name).strip(),
                price=price,
                url=self._absolute_url(data.get("url") or offers.get("url")),
                method="json_ld",
            )

    def _parse_text(
        self, soup: BeautifulSoup, product_name: Optional[str], min_price: float
    ) -> List[RawListing]:
        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()
        lines = [line.strip() for line in soup.get_text("\n").splitlines() if line.strip()]

        listings: List[RawListing] = []
        last_title: Optional[str] = None
        for line in lines:
            if looks_like_title(line) and not has_currency_price(line, self.config.currency):
                last_title = line
                continue
            if last_title is None:
                continue
            match = extract_price(
                line, self.config.currency, product_name, min_price=min_price, allow_generic=False
            )
            if match is None:
                continue
            listings.append(RawListing(title=last_title, price=match.price, method="text"))
            last_title = None
            if len(listings) >= self.max_containers:
                break
        return listings
