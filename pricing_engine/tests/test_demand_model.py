"""
Tests unitaires pour demand_model.py
"""

import pytest

from pricing_engine.models.demand_model import (
    calibrated_elasticity,
    competitor_factor,
    project_profit,
    projected_quantity,
    theoretical_optimum,
)


class TestTheoreticalOptimum:
    """Tests pour P* = coût / (1 + 1/e)."""

    def test_elastic_demand_above_cost(self):
        """Demande élastique : P* strictement supérieur au coût."""
        assert theoretical_optimum(60.0, -2.0) == pytest.approx(120.0)
        for elasticity in (-1.2, -1.5, -3.0, -8.0):
            assert theoretical_optimum(60.0, elasticity) > 60.0

    def test_more_elastic_means_lower_markup(self):
        assert theoretical_optimum(60.0, -4.0) < theoretical_optimum(60.0, -2.0)

    @pytest.mark.parametrize("elasticity", [-1.0, -0.8, -0.3])
    def test_inelastic_has_no_optimum(self, elasticity):
        """-1 <= e < 0 : pas d'optimum fini."""
        assert theoretical_optimum(60.0, elasticity) is None

    def test_invalid_inputs(self):
        assert theoretical_optimum(0.0, -2.0) is None
        assert theoretical_optimum(60.0, 0.0) is None


class TestCalibration:
    """Tests pour le facteur concurrentiel et l'élasticité calibrée."""

    def test_competitor_factor(self):
        assert competitor_factor(90.0, 100.0) == pytest.approx(0.9)
        assert competitor_factor(0.0, 100.0) == 1.0

    def test_neutral_factor_keeps_elasticity(self):
        assert calibrated_elasticity(-2.0, 1.0) == -2.0

    def test_expensive_market_increases_sensitivity(self):
        assert calibrated_elasticity(-2.0, 1.2) == pytest.approx(-2.12)
        assert calibrated_elasticity(-2.0, 0.9) == pytest.approx(-1.94)


class TestProfitProjection:
    """Tests pour la projection volume / profit."""

    def test_price_increase_reduces_volume(self):
        quantity = projected_quantity(40, 100.0, 110.0, -2.0)
        assert quantity == pytest.approx(40 * (100 / 110) ** 2)
        assert quantity < 40

    def test_magnitude_used_for_sign(self):
        """Élasticité positive ou négative : même projection."""
        assert projected_quantity(40, 100.0, 90.0, 2.0) == projected_quantity(40, 100.0, 90.0, -2.0)

    def test_non_positive_price(self):
        assert projected_quantity(40, 100.0, 0.0, -2.0) == 0.0

    def test_project_profit(self):
        projection = project_profit(100.0, 50, 60.0, 90.0, -2.0)

        assert projection.current_profit == 2000.0
        assert projection.new_quantity == pytest.approx(50 * (100 / 90) ** 2)
        assert projection.expected_profit == pytest.approx(30.0 * projection.new_quantity)
        assert projection.increase_amount == pytest.approx(projection.expected_profit - 2000.0)
        assert projection.increase_percent == pytest.approx(projection.increase_amount / 20.0)

    def test_unchanged_price(self):
        projection = project_profit(100.0, 50, 60.0, 100.0, -2.0)
        assert projection.increase_amount == pytest.approx(0.0)
        assert projection.increase_percent == pytest.approx(0.0)
