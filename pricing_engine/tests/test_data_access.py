"""
Tests unitaires pour data_access.py (dépôt Supabase, client mocké).
"""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from pricing_engine.interfaces.data_access import SupabasePricingRepository
from pricing_engine.models.entities import CompetitorProduct, ProcessingStatus


@pytest.fixture
def client():
    return MagicMock()


class TestSupabasePricingRepository:
    """Construction des requêtes Supabase."""

    @pytest.mark.asyncio
    async def test_get_baseline(self, client, home_baseline):
        query = client.table.return_value.select.return_value.eq.return_value.limit.return_value
        query.execute.return_value = SimpleNamespace(data=[home_baseline.to_record()])

        baseline = await SupabasePricingRepository(client).get_baseline(home_baseline.id)

        client.table.assert_called_with("product_baselines")
        assert baseline == home_baseline

    @pytest.mark.asyncio
    async def test_get_missing_baseline(self, client):
        query = client.table.return_value.select.return_value.eq.return_value.limit.return_value
        query.execute.return_value = SimpleNamespace(data=[])

        assert await SupabasePricingRepository(client).get_baseline("missing") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rows,expected", [([{"baseline_id": "b"}], True), ([], False)])
    async def test_insert_status_if_absent(self, client, rows, expected):
        upsert = client.table.return_value.upsert
        upsert.return_value.execute.return_value = SimpleNamespace(data=rows)

        inserted = await SupabasePricingRepository(client).insert_status_if_absent(ProcessingStatus("b"))

        assert inserted is expected
        _, kwargs = upsert.call_args
        assert kwargs["ignore_duplicates"] is True
        assert kwargs["on_conflict"] == "baseline_id"

    @pytest.mark.asyncio
    async def test_replace_competitor_data_uses_rpc(self, client):
        client.rpc.return_value.execute.return_value = SimpleNamespace(data=None)
        product = CompetitorProduct("b", "noon", "Office Chair", 95.0, 0.9, 0.95, rank=1)

        await SupabasePricingRepository(client).replace_competitor_data("b", [product], [])

        name, params = client.rpc.call_args[0]
        assert name == "replace_competitor_data"
        assert params["p_baseline_id"] == "b"
        assert params["p_products"][0]["price"] == 95.0
        assert params["p_aggregates"] == []

    @pytest.mark.asyncio
    async def test_invalid_response(self, client):
        client.table.return_value.insert.return_value.execute.return_value = object()

        with pytest.raises(RuntimeError, match="missing 'data'"):
            await SupabasePricingRepository(client).append_pricing_result(MagicMock())
