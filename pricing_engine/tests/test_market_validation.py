"""
Tests unitaires pour validation.py (qualité des données marché).
"""

import pytest

from pricing_engine.exceptions import DataQualityError
from pricing_engine.models.entities import Confidence, MarketStats, ProductBaseline
from pricing_engine.validation import MarketDataValidator


def stats(lowest, average, highest):
    return MarketStats(lowest=lowest, average=average, highest=highest, confidence=Confidence.MEDIUM)


@pytest.fixture
def validator():
    return MarketDataValidator()


@pytest.fixture
def three_products(make_products):
    return make_products([(95, 0.9), (100, 0.85), (105, 0.8)])


class TestMarketDataValidator:
    """Tests pour MarketDataValidator.validate."""

    def test_valid_market(self, validator, home_baseline, three_products):
        validation = validator.validate(home_baseline, stats(95, 100, 105), three_products)

        assert validation.should_proceed
        assert not validation.has_warning
        assert validation.qualifying_products == 3
        assert validation.ensure_valid() is validation

    def test_insufficient_products(self, validator, home_baseline, make_products):
        """Moins de 3 produits de similarité >= 0.6 : pricing bloqué."""
        products = make_products([(95, 0.9), (100, 0.7), (105, 0.5)])

        validation = validator.validate(home_baseline, stats(95, 100, 105), products)

        assert not validation.should_proceed
        assert validation.reason == "Insufficient competitor data (only 2 products found)"
        with pytest.raises(DataQualityError):
            validation.ensure_valid()

    def test_price_spread(self, validator, home_baseline, three_products):
        """(plus haut - plus bas) / moyenne = 6 : rejet."""
        validation = validator.validate(home_baseline, stats(20, 100, 620), three_products)

        assert not validation.should_proceed
        assert "price spread" in validation.reason

    def test_average_far_from_baseline(self, validator, home_baseline, three_products):
        validation = validator.validate(home_baseline, stats(300, 350, 400), three_products)

        assert not validation.should_proceed
        assert "Possible product mismatch" in validation.reason

    def test_size_variable_category_bounds(self, validator, three_products):
        """Beauté / alimentaire : bornes élargies [0.2, 4.0]."""
        perfume = ProductBaseline(
            product_name="Eau de Parfum 100ml",
            category="Health & Beauty",
            current_price=100.0,
            current_quantity=30,
            cost_per_unit=40.0,
            currency="SAR",
        )

        validation = validator.validate(perfume, stats(300, 350, 400), three_products)

        assert validation.should_proceed

    def test_low_price_variant_warning(self, validator, home_baseline, three_products):
        """Plus bas < 15 % du prix : avertissement non bloquant."""
        validation = validator.validate(home_baseline, stats(10, 90, 120), three_products)

        assert validation.should_proceed
        assert validation.has_warning
        assert "low-priced variants" in validation.warning_message

    def test_no_market_average(self, validator, home_baseline, three_products):
        validation = validator.validate(home_baseline, MarketStats.empty(), three_products)

        assert not validation.should_proceed
        assert "No competitor data" in validation.reason
