"""
Tests unitaires pour les normaliseurs (noms, prix, filtres produit).
"""

from types import SimpleNamespace

import pytest

from competitor_pipeline.normalizers.name_normalizer import (
    levenshtein,
    normalize,
    similarity,
)
from competitor_pipeline.normalizers.price_extractor import (
    extract_price,
    excluded_numbers,
    has_currency_price,
)
from competitor_pipeline.normalizers.product_filters import (
    build_search_queries,
    filter_low_price_outliers,
    is_accessory,
    is_model_mismatch,
    simplify_title,
)


class TestNameNormalizer:
    """Tests pour normalize / similarity."""

    def test_lowercase_and_punctuation(self):
        """Casse et ponctuation supprimées."""
        assert normalize("Apple iPhone 15 Pro, 256GB!") == "apple iphone 15 pro 256gb"

    def test_strips_brackets_and_dash_qualifier(self):
        """Contenu entre parenthèses et qualificatif final retirés."""
        name = "Samsung Galaxy S24 Ultra (256GB) [Dual SIM] - Titanium Black"
        assert normalize(name) == "samsung galaxy s24 ultra"

    def test_hyphenated_model_kept(self):
        """Un tiret sans espaces (référence modèle) n'est pas un qualificatif."""
        assert normalize("Sony WH-1000XM5") == "sony wh 1000xm5"

    def test_stopwords_removed(self):
        assert normalize("The New Apple Watch with Original Band") == "apple watch band"

    def test_model_year_token_removed(self):
        """Année de modèle sur deux chiffres ('24) retirée."""
        assert normalize("Nike Air Max '24") == "nike air max"

    def test_arabic_block_kept(self):
        assert normalize("هاتف آيفون 15 (أسود)") == "هاتف آيفون 15"

    @pytest.mark.parametrize("name", [
        "Apple iPhone 15 Pro (256GB) - Blue",
        "  THE   Original  Dyson V15 Detect '23 ",
        "كفر ايفون 15 - أسود",
        "",
    ])
    def test_idempotent(self, name):
        """normalize(normalize(x)) == normalize(x)."""
        once = normalize(name)
        assert normalize(once) == once

    def test_levenshtein(self):
        assert levenshtein("kitten", "sitting") == 3
        assert levenshtein("", "abc") == 3
        assert levenshtein("same", "same") == 0

    def test_identical_after_normalization(self):
        """Titres identiques après normalisation : similarité exactement 1.0."""
        assert similarity("Apple iPhone 15 Pro, 256GB!", "APPLE IPHONE 15 PRO 256GB") == 1.0

    def test_similarity_bounds(self):
        score = similarity("Apple iPhone 15 Pro", "Samsung Galaxy S24")
        assert 0.0 <= score < 0.5

    def test_both_empty_is_zero(self):
        """Deux noms vides après normalisation : 0.0."""
        assert similarity("(bundle)", "the new") == 0.0

    def test_symmetric(self):
        a, b = "Dyson V15 Detect", "Dyson V15 Detect Absolute"
        assert similarity(a, b) == similarity(b, a)


class TestPriceExtractor:
    """Tests pour la grammaire de prix."""

    def test_currency_prefix(self):
        match = extract_price("SAR 1,299.00", "SAR")
        assert match.price == 1299.0
        assert match.rule == "currency_prefix"

    def test_currency_suffix(self):
        match = extract_price("1,299 SR", "SAR")
        assert match.price == 1299.0
        assert match.rule == "currency_suffix"

    def test_vat_suffix_for_sar(self):
        """Prix noon sans symbole, suivi de 'incl. VAT'."""
        match = extract_price("4,299.00 incl. VAT", "SAR")
        assert match.price == 4299.0
        assert match.rule == "vat_suffix"

    def test_dollar_price(self):
        assert extract_price("Now $499.99", "USD").price == 499.99

    def test_filler_words_ignored(self):
        assert extract_price("From $1,049.00/mo", "USD").price == 1049.0

    def test_storage_and_model_numbers_never_prices(self):
        """256GB et 'S24' du nom produit ne sont pas lus comme des prix."""
        assert excluded_numbers("Galaxy S24 256GB") == {24.0, 256.0}
        match = extract_price("256GB 1,099", "USD", product_name="Galaxy S24 256GB")
        assert match.price == 1099.0
        assert match.rule == "integer"

    def test_years_rejected_by_generic_rules(self):
        assert extract_price("Released 2024", "USD") is None

    def test_min_price(self):
        assert extract_price("$20", "USD") is None
        assert extract_price("$20", "USD", min_price=1).price == 20.0

    def test_generic_rules_can_be_disabled(self):
        assert extract_price("1,299.00", "SAR", allow_generic=False) is None
        assert extract_price("1,299.00", "SAR").rule == "decimal"

    def test_has_currency_price(self):
        assert has_currency_price("Now $12.99", "USD")
        assert not has_currency_price("Only 3 left in stock", "USD")


class TestProductFilters:
    """Tests pour les filtres accessoires / modèles / prix bas."""

    def test_simplify_title(self):
        title = "Samsung Galaxy S24 Ultra, AI Phone, 256GB, Titanium Black"
        assert simplify_title(title) == "Samsung Galaxy S24 Ultra 256GB"

    def test_iphone_queries_drop_storage(self):
        assert build_search_queries("Apple iPhone 15 Pro 256GB") == [
            "Apple iPhone 15 Pro 256GB",
            "Apple iPhone 15 Pro",
        ]

    def test_generic_queries_shorten(self):
        queries = build_search_queries("Sony WH-1000XM5 Wireless Noise Cancelling Headphones")
        assert queries[0] == "Sony WH-1000XM5 Wireless Noise Cancelling Headphones"
        assert queries[1] == "Sony WH-1000XM5 Wireless Noise"

    @pytest.mark.parametrize("title", [
        "Silicone Case for iPhone 15",
        "USB-C Charger 20W",
        "Replacement Ear Pads for WH-1000XM5",
        "كفر ايفون 15",
    ])
    def test_accessories(self, title):
        assert is_accessory(title)

    def test_device_is_not_accessory(self):
        assert not is_accessory("Apple iPhone 15 Pro 256GB")

    @pytest.mark.parametrize("baseline,competitor,expected", [
        ("iPhone 15 Pro", "iPhone 14 Pro", True),
        ("iPhone 15 Pro", "iPhone 15 Pro Max", True),
        ("iPhone 15 Pro", "Apple iPhone 15 Pro 256GB", False),
        ("Galaxy S24 Ultra", "Galaxy S24", True),
        ("Sony WH-1000XM5", "iPhone 15", False),
    ])
    def test_model_mismatch(self, baseline, competitor, expected):
        assert is_model_mismatch(baseline, competitor) is expected

    def test_low_price_outliers(self):
        """Prix 5x sous la moyenne retiré."""
        items = [SimpleNamespace(price=p) for p in (1000.0, 1100.0, 100.0)]
        kept = filter_low_price_outliers(items)
        assert [item.price for item in kept] == [1000.0, 1100.0]

    def test_low_price_outliers_single_item(self):
        items = [SimpleNamespace(price=10.0)]
        assert filter_low_price_outliers(items) == items
