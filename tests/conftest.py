"""
Shared fixtures for the blocks analytics tests.

============================================================
FIXTURES
============================================================
- mock_clock: frozen MockClock installed as the process clock
- fake_client: in-memory stand-in for ClickHouseClient
- repository / window / broadcaster / ingestion_service
- make_payload / make_tx: chain-sync block payload builders
============================================================
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pytest

from core.clock import ClockFactory, MockClock
from data_ingestion.ingestion_service import BlockIngestionService
from data_ingestion.normalizers.block_normalizer import BlockNormalizer
from realtime.block_window import BlockWindow
from realtime.broadcaster import LiveBroadcaster
from storage.clickhouse import ClickHouseError
from storage.repositories.block_repository import BlockRepository


FROZEN_TIME = datetime(2025, 7, 8, 17, 38, 26, 123456)


# ============================================================
# PAYLOAD BUILDERS
# ============================================================

def make_tx(fee: int = 170000, outputs: Iterable[int] = (1_000_000,)) -> Dict[str, Any]:
    """A transaction in the chain-sync shape, amounts in lovelace."""
    return {
        "id": f"tx-{fee}",
        "fee": {"ada": {"lovelace": fee}},
        "outputs": [
            {"address": "addr_test1", "value": {"ada": {"lovelace": amount}}}
            for amount in outputs
        ],
    }


def make_payload(
    block_id: str = "b1",
    height: int = 11_000_000,
    slot: int = 150_000_000,
    size: int = 4096,
    issuer: Any = "pool123",
    transactions: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    """A decoded block payload as delivered by the feed."""
    payload = {
        "id": block_id,
        "height": height,
        "slot": slot,
        "size": {"bytes": size},
        "transactions": transactions if transactions is not None else [],
    }
    if issuer is not None:
        payload["issuer"] = issuer
    return payload


def b1_payload() -> Dict[str, Any]:
    """Two transactions: fees 100000 + 200000, outputs 5 ADA + 3 ADA."""
    return make_payload(
        block_id="b1",
        issuer="pool123",
        transactions=[
            make_tx(fee=100_000, outputs=(2_000_000, 3_000_000)),
            make_tx(fee=200_000, outputs=(3_000_000,)),
        ],
    )


# ============================================================
# FAKE CLICKHOUSE
# ============================================================

class FakeClickHouseClient:
    """
    In-memory ClickHouseClient with the same async surface.

    Rows are kept exactly as inserted. Point lookups, filtered block
    selects and table stats are answered from them; anything else
    comes from `responses` (consumed in order). UInt64 columns are
    returned as strings, the way FORMAT JSON quotes them.
    """

    def __init__(self) -> None:
        self.rows: List[Dict[str, Any]] = []
        self.queries: List[str] = []
        self.commands: List[str] = []
        self.insert_calls: List[List[Dict[str, Any]]] = []
        self.responses: List[List[Dict[str, Any]]] = []
        self.fail_queries = False
        self.fail_inserts = False
        self.fail_commands = False
        self.fail_lookups = False
        self.ping_result = True
        self.last_latency_ms: Optional[float] = 1.5
        self.closed = False

    @staticmethod
    def _error(sql: str) -> ClickHouseError:
        return ClickHouseError("HTTP 500", status_code=500, response_body="boom", query=sql)

    # -- client surface ------------------------------------------------

    async def query(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        self.queries.append(sql)
        params = dict(params or {})
        if self.fail_queries or (self.fail_lookups and "AS found" in sql):
            raise self._error(sql)
        if self.responses:
            return self.responses.pop(0)
        if "AS found" in sql:
            return [{"found": 1}] if self._matching(params) else []
        if "count() AS total_blocks" in sql:
            return [self._stats()]
        if "ORDER BY block_height DESC" in sql or "WHERE block_id" in sql:
            rows = sorted(self._matching(params), key=lambda r: r["block_height"], reverse=True)
            offset = int(params.get("offset", 0))
            if "limit" in params:
                rows = rows[offset:offset + int(params["limit"])]
            return [_as_wire(row) for row in rows]
        return []

    async def command(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> None:
        self.commands.append(sql)
        if self.fail_commands:
            raise self._error(sql)
        if sql.startswith("TRUNCATE"):
            self.rows.clear()

    async def insert(self, table: str, rows) -> int:
        if self.fail_inserts:
            raise self._error(f"INSERT INTO {table}")
        batch = [dict(row) for row in rows]
        self.insert_calls.append(batch)
        self.rows.extend(batch)
        return len(batch)

    async def ping(self) -> bool:
        return self.ping_result

    async def close(self) -> None:
        self.closed = True

    # -- emulation -----------------------------------------------------

    def _matching(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        rows = self.rows
        if "block_id" in params:
            rows = [r for r in rows if r["block_id"] == params["block_id"]]
        if "issuer" in params:
            rows = [r for r in rows if r["issuer"] == params["issuer"]]
        if "min_height" in params:
            rows = [
                r for r in rows
                if params["min_height"] <= r["block_height"] <= params["max_height"]
            ]
        if "start" in params:
            start = params["start"].strftime("%Y-%m-%d %H:%M:%S")
            end = params["end"].strftime("%Y-%m-%d %H:%M:%S")
            rows = [r for r in rows if start <= r["date_time"] <= end]
        return rows

    def _stats(self) -> Dict[str, Any]:
        if not self.rows:
            return {
                "total_blocks": "0", "avg_height": None, "max_height": "0",
                "min_height": "0", "total_transactions": "0",
                "avg_transactions_per_block": None,
            }
        heights = [r["block_height"] for r in self.rows]
        txs = [r["tx_count"] for r in self.rows]
        return {
            "total_blocks": str(len(self.rows)),
            "avg_height": sum(heights) / len(heights),
            "max_height": str(max(heights)),
            "min_height": str(min(heights)),
            "total_transactions": str(sum(txs)),
            "avg_transactions_per_block": sum(txs) / len(txs),
        }


def _as_wire(row: Dict[str, Any]) -> Dict[str, Any]:
    wire = dict(row)
    for column in ("block_height", "block_slot", "ada_output", "fees"):
        wire[column] = str(wire[column])
    return wire


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def mock_clock():
    """Frozen clock, also installed as the process-wide clock."""
    clock = MockClock(FROZEN_TIME)
    ClockFactory.set_clock(clock)
    yield clock
    ClockFactory.reset()


@pytest.fixture
def fake_client():
    return FakeClickHouseClient()


@pytest.fixture
def repository(fake_client, mock_clock):
    return BlockRepository(fake_client, table="blocks", clock=mock_clock)


@pytest.fixture
def window():
    return BlockWindow(capacity=10)


@pytest.fixture
def broadcaster():
    return LiveBroadcaster(max_pending=10)


@pytest.fixture
def normalizer(mock_clock):
    return BlockNormalizer(clock=mock_clock)


@pytest.fixture
def ingestion_service(normalizer, window, repository, broadcaster, mock_clock):
    return BlockIngestionService(
        normalizer=normalizer,
        window=window,
        repository=repository,
        broadcaster=broadcaster,
        clock=mock_clock,
    )
