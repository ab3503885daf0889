"""
Block Repository - Durable Store Gateway.

============================================================
PURPOSE
============================================================
Idempotent, best-effort persistence of CanonicalBlocks into the
ClickHouse "blocks" table, plus the read-only query surface the
dashboard aggregates over.

============================================================
DEDUPLICATION
============================================================
The MergeTree table has no unique constraint. persist_if_new()
checks block_id first and inserts only when absent. Two processes
writing the same block_id at the same moment can both insert; that
race is accepted. When the existence check itself fails, the block
is inserted anyway: a duplicate row can be cleaned up later, a lost
block cannot.

============================================================
TIMESTAMPS
============================================================
date_time and inserted_at are truncated to whole seconds before
they are written. The DateTime column has second granularity.

============================================================
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from core.clock import ClockFactory, ClockProtocol, truncate_to_second
from data_ingestion.models import CanonicalBlock
from realtime.block_window import BlockWindow
from storage.clickhouse import ClickHouseClient, ClickHouseError
from storage.repositories.base import BaseRepository
from storage.repositories.exceptions import (
    QueryError,
    StoreLookupError,
    WriteError,
)


BLOCK_COLUMNS = (
    "block_id",
    "block_size",
    "block_height",
    "block_slot",
    "issuer",
    "tx_count",
    "ada_output",
    "fees",
    "date_time",
    "inserted_at",
)

_SELECT_COLUMNS = ", ".join(BLOCK_COLUMNS)
_STORE_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class PersistOutcome(str, Enum):
    """Result of persist_if_new."""
    INSERTED = "inserted"
    ALREADY_EXISTS = "already_exists"


@dataclass(frozen=True)
class BlockStats:
    """Table-wide aggregates. All zeros when the table is empty."""
    total_blocks: int = 0
    avg_height: float = 0
    max_height: int = 0
    min_height: int = 0
    total_transactions: int = 0
    avg_transactions_per_block: float = 0

    @classmethod
    def from_row(cls, row: Optional[Dict[str, Any]]) -> "BlockStats":
        if not row:
            return cls()
        total = _to_int(row.get("total_blocks"))
        if total == 0:
            return cls()
        return cls(
            total_blocks=total,
            avg_height=_to_float(row.get("avg_height")),
            max_height=_to_int(row.get("max_height")),
            min_height=_to_int(row.get("min_height")),
            total_transactions=_to_int(row.get("total_transactions")),
            avg_transactions_per_block=_to_float(row.get("avg_transactions_per_block")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_blocks": self.total_blocks,
            "avg_height": self.avg_height,
            "max_height": self.max_height,
            "min_height": self.min_height,
            "total_transactions": self.total_transactions,
            "avg_transactions_per_block": self.avg_transactions_per_block,
        }


class BlockRepository(BaseRepository):
    """
    Repository for the blocks table.

    ============================================================
    WRITE PATH
    ============================================================
    exists / insert / insert_batch / persist_if_new
    migrate_from_window / store_from_memory / delete_all

    ============================================================
    READ PATH (block_height DESC unless stated)
    ============================================================
    stats / paginated / by_height_range / by_issuer / by_date_range
    latest / by_id / recent / all
    issuer_summary / tx_distribution / hourly_activity

    ============================================================
    """

    def __init__(
        self,
        client: ClickHouseClient,
        table: str = "blocks",
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        super().__init__(client, table, "blocks")
        self._clock = clock

    @property
    def clock(self) -> ClockProtocol:
        return self._clock or ClockFactory.get_clock()

    # =========================================================
    # WRITE PATH
    # =========================================================

    async def exists(self, block_id: str) -> bool:
        """
        Point lookup by natural key.

        Raises:
            StoreLookupError: If the store cannot answer
        """
        try:
            rows = await self._client.query(
                f"SELECT 1 AS found FROM {self._table} "
                "WHERE block_id = {block_id:String} LIMIT 1",
                {"block_id": block_id},
            )
        except ClickHouseError as e:
            self._log_store_error(e, "exists", {"block_id": block_id})
            raise StoreLookupError(
                repository_name=self._repository_name,
                key=block_id,
                original_error=str(e),
            ) from e
        return len(rows) > 0

    async def insert(self, block: CanonicalBlock) -> CanonicalBlock:
        """
        Write one block, stamping inserted_at.

        Returns:
            The block as stored

        Raises:
            WriteError: If the store rejects or cannot take the write
        """
        stored = self._prepare(block)
        await self._write([stored], "insert")
        self._logger.debug(f"Inserted block {stored.block_id} (height={stored.block_height})")
        return stored

    async def insert_batch(self, blocks: Sequence[CanonicalBlock]) -> int:
        """
        Bulk write used for migration and backfill sources.

        Returns:
            Number of rows accepted
        """
        if not blocks:
            return 0
        stored = [self._prepare(block) for block in blocks]
        count = await self._write(stored, "insert_batch")
        self._logger.info(f"Inserted batch of {count} blocks")
        return count

    async def persist_if_new(self, block: CanonicalBlock) -> PersistOutcome:
        """
        Insert the block unless its block_id is already stored.

        A failed existence check falls through to the insert.

        Raises:
            WriteError: If the insert itself fails
        """
        try:
            if await self.exists(block.block_id):
                self._logger.debug(f"Block {block.block_id} already stored, skipping")
                return PersistOutcome.ALREADY_EXISTS
        except StoreLookupError as e:
            self._logger.warning(
                f"Existence check failed for {block.block_id}, inserting anyway: {e.message}"
            )

        await self.insert(block)
        return PersistOutcome.INSERTED

    async def migrate_from_window(self, window: BlockWindow) -> int:
        """Copy everything currently in the real-time window into the store."""
        blocks = window.snapshot()
        count = await self.insert_batch(blocks)
        self._logger.info(f"Migrated {count} blocks from the in-memory window")
        return count

    async def store_from_memory(self, data: Dict[str, Any]) -> CanonicalBlock:
        """
        Store a block held as a plain dict (e.g. a window export).

        date_time may be a datetime or an ISO 8601 string in any of the
        usual variants ("T" or space separator, trailing "Z", fractions).
        """
        try:
            block = CanonicalBlock.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise WriteError(
                repository_name=self._repository_name,
                operation="store_from_memory",
                original_error=f"invalid block record: {e}",
                block_ids=[data.get("block_id")] if isinstance(data, dict) else None,
            ) from e
        return await self.insert(block)

    async def delete_all(self) -> None:
        """Remove every row. Administrative use only."""
        try:
            await self._client.command(f"TRUNCATE TABLE IF EXISTS {self._table}")
        except ClickHouseError as e:
            self._log_store_error(e, "delete_all")
            raise WriteError(
                repository_name=self._repository_name,
                operation="delete_all",
                original_error=str(e),
            ) from e
        self._logger.warning(f"All rows deleted from {self._table}")

    def _prepare(self, block: CanonicalBlock) -> CanonicalBlock:
        return block.with_inserted_at(self.clock.now_truncated())

    async def _write(self, blocks: List[CanonicalBlock], operation: str) -> int:
        rows = [_block_to_row(block) for block in blocks]
        try:
            return await self._client.insert(self._table, rows)
        except ClickHouseError as e:
            block_ids = [block.block_id for block in blocks]
            self._log_store_error(e, operation, {"block_ids": block_ids[:10]})
            raise WriteError(
                repository_name=self._repository_name,
                operation=operation,
                original_error=str(e),
                block_ids=block_ids,
            ) from e

    # =========================================================
    # READ PATH
    # =========================================================

    async def stats(self) -> BlockStats:
        row = await self._select_one(
            "SELECT count() AS total_blocks, "
            "avg(block_height) AS avg_height, "
            "max(block_height) AS max_height, "
            "min(block_height) AS min_height, "
            "sum(tx_count) AS total_transactions, "
            "avg(tx_count) AS avg_transactions_per_block "
            f"FROM {self._table}",
            operation="stats",
        )
        return BlockStats.from_row(row)

    async def paginated(self, limit: int = 50, offset: int = 0) -> List[CanonicalBlock]:
        rows = await self._select(
            f"SELECT {_SELECT_COLUMNS} FROM {self._table} "
            "ORDER BY block_height DESC "
            "LIMIT {limit:UInt32} OFFSET {offset:UInt32}",
            {"limit": max(limit, 0), "offset": max(offset, 0)},
            operation="paginated",
        )
        return self._to_blocks(rows)

    async def by_height_range(self, min_height: int, max_height: int) -> List[CanonicalBlock]:
        rows = await self._select(
            f"SELECT {_SELECT_COLUMNS} FROM {self._table} "
            "WHERE block_height >= {min_height:UInt64} AND block_height <= {max_height:UInt64} "
            "ORDER BY block_height DESC",
            {"min_height": min_height, "max_height": max_height},
            operation="by_height_range",
        )
        return self._to_blocks(rows)

    async def by_issuer(self, issuer: str) -> List[CanonicalBlock]:
        rows = await self._select(
            f"SELECT {_SELECT_COLUMNS} FROM {self._table} "
            "WHERE issuer = {issuer:String} "
            "ORDER BY block_height DESC",
            {"issuer": issuer},
            operation="by_issuer",
        )
        return self._to_blocks(rows)

    async def by_date_range(self, start: datetime, end: datetime) -> List[CanonicalBlock]:
        rows = await self._select(
            f"SELECT {_SELECT_COLUMNS} FROM {self._table} "
            "WHERE date_time >= {start:DateTime} AND date_time <= {end:DateTime} "
            "ORDER BY block_height DESC",
            {"start": truncate_to_second(start), "end": truncate_to_second(end)},
            operation="by_date_range",
        )
        return self._to_blocks(rows)

    async def latest(self) -> Optional[CanonicalBlock]:
        blocks = await self.recent(1)
        return blocks[0] if blocks else None

    async def by_id(self, block_id: str) -> Optional[CanonicalBlock]:
        row = await self._select_one(
            f"SELECT {_SELECT_COLUMNS} FROM {self._table} "
            "WHERE block_id = {block_id:String} LIMIT 1",
            {"block_id": block_id},
            operation="by_id",
        )
        return self._to_block(row) if row else None

    async def recent(self, limit: int = 10) -> List[CanonicalBlock]:
        rows = await self._select(
            f"SELECT {_SELECT_COLUMNS} FROM {self._table} "
            "ORDER BY block_height DESC LIMIT {limit:UInt32}",
            {"limit": max(limit, 0)},
            operation="recent",
        )
        return self._to_blocks(rows)

    async def all(self) -> List[CanonicalBlock]:
        rows = await self._select(
            f"SELECT {_SELECT_COLUMNS} FROM {self._table} ORDER BY block_height DESC",
            operation="all",
        )
        return self._to_blocks(rows)

    # ---------------------------------------------------------
    # Aggregates (ordering stated per query)
    # ---------------------------------------------------------

    async def issuer_summary(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Top issuers by block count."""
        rows = await self._select(
            "SELECT issuer, count() AS block_count, "
            "sum(tx_count) AS total_transactions, "
            "avg(tx_count) AS avg_transactions "
            f"FROM {self._table} "
            "GROUP BY issuer ORDER BY block_count DESC LIMIT {limit:UInt32}",
            {"limit": max(limit, 0)},
            operation="issuer_summary",
        )
        return [
            {
                "issuer": str(row.get("issuer", "")),
                "block_count": _to_int(row.get("block_count")),
                "total_transactions": _to_int(row.get("total_transactions")),
                "avg_transactions": round(_to_float(row.get("avg_transactions")), 2),
            }
            for row in rows
        ]

    async def tx_distribution(self) -> List[Dict[str, Any]]:
        """Block counts bucketed by transaction count, ordered by bucket average."""
        rows = await self._select(
            "SELECT multiIf("
            "tx_count = 0, 'Empty (0)', "
            "tx_count <= 10, 'Low (1-10)', "
            "tx_count <= 50, 'Medium (11-50)', "
            "tx_count <= 100, 'High (51-100)', "
            "'Very High (>100)') AS tx_range, "
            "count() AS count, avg(tx_count) AS avg_tx_count "
            f"FROM {self._table} "
            "GROUP BY tx_range ORDER BY avg_tx_count",
            operation="tx_distribution",
        )
        return [
            {
                "range": str(row.get("tx_range", "")),
                "count": _to_int(row.get("count")),
                "avg_tx_count": round(_to_float(row.get("avg_tx_count")), 2),
            }
            for row in rows
        ]

    async def hourly_activity(self, hours: int = 24) -> List[Dict[str, Any]]:
        """Per-hour block production over the trailing window, ordered by hour."""
        since = self.clock.now_truncated() - timedelta(hours=hours)
        rows = await self._select(
            "SELECT toHour(date_time) AS hour, count() AS block_count, "
            "avg(tx_count) AS avg_transactions, sum(tx_count) AS total_transactions "
            f"FROM {self._table} "
            "WHERE date_time >= {since:DateTime} "
            "GROUP BY hour ORDER BY hour",
            {"since": since},
            operation="hourly_activity",
        )
        return [
            {
                "hour": _to_int(row.get("hour")),
                "block_count": _to_int(row.get("block_count")),
                "avg_transactions": round(_to_float(row.get("avg_transactions")), 2),
                "total_transactions": _to_int(row.get("total_transactions")),
            }
            for row in rows
        ]

    # ---------------------------------------------------------
    # Row mapping
    # ---------------------------------------------------------

    def _to_block(self, row: Dict[str, Any]) -> CanonicalBlock:
        try:
            return CanonicalBlock.from_dict(row)
        except (KeyError, TypeError, ValueError) as e:
            raise QueryError(
                repository_name=self._repository_name,
                operation="map_row",
                query_description="row mapping",
                original_error=f"malformed row: {e}",
            ) from e

    def _to_blocks(self, rows: List[Dict[str, Any]]) -> List[CanonicalBlock]:
        return [self._to_block(row) for row in rows]


# ============================================================
# HELPERS
# ============================================================

def _block_to_row(block: CanonicalBlock) -> Dict[str, Any]:
    inserted_at = block.inserted_at or block.date_time
    return {
        "block_id": block.block_id,
        "block_size": block.block_size,
        "block_height": block.block_height,
        "block_slot": block.block_slot,
        "issuer": block.issuer,
        "tx_count": block.tx_count,
        "ada_output": block.ada_output,
        "fees": block.fees,
        "date_time": truncate_to_second(block.date_time).strftime(_STORE_TIME_FORMAT),
        "inserted_at": truncate_to_second(inserted_at).strftime(_STORE_TIME_FORMAT),
    }


def _to_int(value: Any) -> int:
    # 64-bit integers arrive quoted in FORMAT JSON
    if value is None:
        return 0
    try:
        return int(float(value)) if isinstance(value, str) and "." in value else int(value)
    except (TypeError, ValueError):
        return 0


def _to_float(value: Any) -> float:
    if value is None:
        return 0.0
    try:
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if result != result else result  # NaN from avg() over no rows
