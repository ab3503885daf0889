"""
Tests for the dashboard: aggregation service, API routes and formatting.

============================================================
TEST COVERAGE
============================================================
1. BlockAnalyticsService statistics and degradation
2. /blocks, /live and /health routes
3. Live websocket snapshot
4. Display formatting helpers
============================================================
"""

from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from dashboard.formatting import (
    format_ada_amount,
    format_bytes,
    format_number,
    format_timestamp,
)
from dashboard.main import create_app
from dashboard.services import BlockAnalyticsService
from data_ingestion.models import CanonicalBlock


def _row(block_id: str, height: int, size: int = 1000, fees: int = 100, tx_count: int = 2,
         issuer: str = "pool123"):
    return {
        "block_id": block_id,
        "block_size": size,
        "block_height": height,
        "block_slot": height * 20,
        "issuer": issuer,
        "tx_count": tx_count,
        "ada_output": 5_000_000,
        "fees": fees,
        "date_time": "2025-07-08 17:00:00",
        "inserted_at": "2025-07-08 17:00:01",
    }


@pytest.fixture
def analytics(repository, fake_client, mock_clock):
    return BlockAnalyticsService(repository, fake_client, clock=mock_clock)


@pytest.fixture
def client(analytics, window, broadcaster, ingestion_service):
    app = create_app(analytics, window, broadcaster, ingestion=ingestion_service)
    with TestClient(app) as test_client:
        yield test_client


# =============================================================
# TEST: BlockAnalyticsService
# =============================================================

class TestAnalyticsService:
    """Aggregates and their zero/empty fallbacks."""

    @pytest.mark.asyncio
    async def test_statistics_integer_averages(self, analytics, fake_client):
        fake_client.rows = [_row("a", 10, size=1000, fees=100), _row("b", 11, size=2001, fees=201)]

        stats = await analytics.get_statistics()

        assert stats["total_blocks"] == 2
        assert stats["latest_block_height"] == 11
        assert stats["latest_block_time"] == datetime(2025, 7, 8, 17, 0, 0)
        assert stats["avg_block_size"] == 1500
        assert stats["avg_fees"] == 150

    @pytest.mark.asyncio
    async def test_statistics_display_values(self, analytics, fake_client):
        fake_client.rows = [
            _row("a", 1_000_000, size=1000, fees=2_000_000),
            _row("b", 1_234_567, size=2001, fees=3_000_001),
        ]

        formatted = (await analytics.get_statistics())["formatted"]

        assert formatted["total_blocks"] == "2"
        assert formatted["latest_block_height"] == "1.234.567"
        assert formatted["latest_block_time"] == "2025-07-08 17:00:00"
        assert formatted["avg_transactions_per_block"] == "2.00"
        assert formatted["avg_block_size"] == "1.46 KB"
        assert formatted["avg_fees"] == "2.50 ADA"

    @pytest.mark.asyncio
    async def test_statistics_empty_store(self, analytics):
        stats = await analytics.get_statistics()

        assert stats["total_blocks"] == 0
        assert stats["avg_height"] == 0
        assert stats["latest_block_time"] is None
        assert stats["avg_block_size"] == 0
        assert stats["formatted"]["latest_block_time"] == ""
        assert stats["formatted"]["avg_block_size"] == "0 bytes"

    @pytest.mark.asyncio
    async def test_store_failure_degrades_to_zeros(self, analytics, fake_client):
        fake_client.rows = [_row("a", 10)]
        fake_client.fail_queries = True

        stats = await analytics.get_statistics()
        dashboard = await analytics.get_dashboard()

        assert stats["total_blocks"] == 0
        assert stats["latest_block_height"] == 0
        assert dashboard["recent_blocks"] == []
        assert dashboard["issuer_summary"] == []
        assert dashboard["block_distribution"] == []
        assert dashboard["hourly_averages"] == []
        assert dashboard["last_updated"] == datetime(2025, 7, 8, 17, 38, 26)

    @pytest.mark.asyncio
    async def test_recent_blocks_default_limit(self, analytics, fake_client):
        fake_client.rows = [_row(f"b{i}", i) for i in range(30)]

        recent = await analytics.get_recent_blocks()

        assert len(recent) == 20
        assert recent[0]["block_id"] == "b29"


# =============================================================
# TEST: /blocks routes
# =============================================================

class TestBlockRoutes:

    def test_root(self, client):
        assert client.get("/").json()["status"] == "ok"

    def test_stats(self, client, fake_client):
        fake_client.rows = [_row("a", 10), _row("b", 12)]

        response = client.get("/blocks/stats")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["total_blocks"] == 2
        assert body["data"]["max_height"] == 12

    def test_stats_when_store_down(self, client, fake_client):
        fake_client.fail_queries = True

        response = client.get("/blocks/stats")

        assert response.status_code == 200
        assert response.json()["data"]["total_blocks"] == 0

    def test_recent_limit(self, client, fake_client):
        fake_client.rows = [_row(f"b{i}", i) for i in range(5)]

        response = client.get("/blocks/recent", params={"limit": 2})

        assert [b["block_id"] for b in response.json()["data"]] == ["b4", "b3"]

    def test_recent_display_values(self, client, fake_client):
        fake_client.rows = [_row("a", 11_000_000, size=4096, fees=170_000)]

        block = client.get("/blocks/recent").json()["data"][0]

        assert block["fees"] == 170_000
        assert block["formatted"] == {
            "block_height": "11.000.000",
            "date_time": "2025-07-08 17:00:00",
            "block_size": "4.00 KB",
            "ada_output": "5.00 ADA",
            "fees": "0.17 ADA",
        }

    def test_recent_limit_validated(self, client):
        assert client.get("/blocks/recent", params={"limit": 0}).status_code == 422

    def test_issuers(self, client, fake_client):
        fake_client.responses.append([
            {"issuer": "poolA", "block_count": "3", "total_transactions": "9",
             "avg_transactions": 3.0},
        ])

        data = client.get("/blocks/issuers").json()["data"]

        assert data == [{"issuer": "poolA", "block_count": 3,
                         "total_transactions": 9, "avg_transactions": 3.0}]

    def test_distribution_and_hourly_empty(self, client):
        assert client.get("/blocks/distribution").json()["data"] == []
        assert client.get("/blocks/hourly").json()["data"] == []

    def test_latest(self, client, fake_client):
        fake_client.rows = [_row("a", 10), _row("b", 12)]

        data = client.get("/blocks/latest").json()["data"]

        assert data["block_id"] == "b"

    def test_latest_empty(self, client):
        body = client.get("/blocks/latest").json()

        assert body["data"] is None
        assert body["message"] == "No blocks stored yet"

    def test_block_by_id(self, client, fake_client):
        fake_client.rows = [_row("abc", 10)]

        response = client.get("/blocks/abc")

        assert response.status_code == 200
        assert response.json()["data"]["block_height"] == 10

    def test_block_not_found(self, client):
        assert client.get("/blocks/missing").status_code == 404

    def test_dashboard(self, client, fake_client):
        fake_client.rows = [_row("a", 10)]

        data = client.get("/blocks/dashboard").json()["data"]

        assert data["statistics"]["total_blocks"] == 1
        assert data["recent_blocks"][0]["block_id"] == "a"
        assert "last_updated" in data
        assert data["last_updated_display"] == "2025-07-08 17:38:26"
        assert data["statistics"]["formatted"]["total_blocks"] == "1"
        assert data["recent_blocks"][0]["formatted"]["block_size"] == "1000 bytes"


# =============================================================
# TEST: /live and /health
# =============================================================

class TestLiveAndHealth:

    def _push(self, window, block_id: str) -> None:
        window.push(CanonicalBlock(
            block_id=block_id, block_height=1, block_slot=20, block_size=10,
            issuer="pool", tx_count=0, ada_output=0, fees=0,
            date_time=datetime(2025, 7, 8, 17, 0, 0),
        ))

    def test_window_snapshot(self, client, window):
        self._push(window, "old")
        self._push(window, "new")

        body = client.get("/live/window").json()

        assert body["capacity"] == 10
        assert [b["block_id"] for b in body["data"]] == ["new", "old"]
        assert body["data"][0]["is_real_time"] is True

    def test_websocket_sends_snapshot_first(self, client, window, broadcaster):
        self._push(window, "w1")

        with client.websocket_connect("/live/ws") as websocket:
            message = websocket.receive_json()
            assert broadcaster.subscriber_count == 1

        assert message["event"] == "snapshot"
        assert [b["block_id"] for b in message["blocks"]] == ["w1"]
        # same record shape as /live/window and new_block events
        assert message["blocks"][0]["is_real_time"] is True

    def test_health_ok(self, client):
        body = client.get("/health").json()

        assert body["data"]["status"] == "ok"
        assert body["data"]["store_reachable"] is True
        assert body["data"]["window_capacity"] == 10
        assert body["data"]["ingestion"]["healthy"] is True

    def test_health_degraded_when_store_unreachable(self, client, fake_client):
        fake_client.ping_result = False

        body = client.get("/health").json()

        assert body["data"]["status"] == "degraded"
        assert body["data"]["store_reachable"] is False


# =============================================================
# TEST: Formatting
# =============================================================

class TestFormatting:

    def test_format_number(self):
        assert format_number(1234567) == "1.234.567"
        assert format_number(999) == "999"
        assert format_number(3.14159) == "3.14"
        assert format_number("n/a") == "n/a"

    def test_format_timestamp_drops_fraction(self):
        assert format_timestamp(datetime(2025, 7, 8, 17, 38, 26, 500)) == "2025-07-08 17:38:26"
        assert format_timestamp("2025-07-08 17:38:26.123") == "2025-07-08 17:38:26"

    def test_format_ada_amount(self):
        assert format_ada_amount(8_000_000) == "8.00 ADA"
        assert format_ada_amount("1500000") == "1.50 ADA"
        assert format_ada_amount("unknown") == "unknown"

    def test_format_bytes(self):
        assert format_bytes(512) == "512 bytes"
        assert format_bytes(2048) == "2.00 KB"
        assert format_bytes(3 * 1024 * 1024) == "3.00 MB"
        assert format_bytes("4096") == "4.00 KB"
