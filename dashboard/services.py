"""
Aggregation Services for the Dashboard.

Read-only queries over the blocks table. Every method degrades to
zero or empty values when the store is unavailable, so the
dashboard renders instead of failing.
"""
import logging
from typing import Any, Dict, List, Optional

from core.clock import ClockFactory, ClockProtocol
from dashboard.formatting import (
    format_ada_amount,
    format_bytes,
    format_number,
    format_timestamp,
)
from data_ingestion.models import CanonicalBlock
from storage.clickhouse import ClickHouseClient
from storage.repositories.block_repository import BlockRepository, BlockStats
from storage.repositories.exceptions import RepositoryException

logger = logging.getLogger(__name__)

RECENT_SAMPLE_SIZE = 100


class BlockAnalyticsService:
    def __init__(
        self,
        repository: BlockRepository,
        client: Optional[ClickHouseClient] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        self.repository = repository
        self.client = client or repository.client
        self._clock = clock

    @property
    def clock(self) -> ClockProtocol:
        return self._clock or ClockFactory.get_clock()

    # =======================
    # 1. STATISTICS
    # =======================
    async def get_statistics(self) -> Dict[str, Any]:
        try:
            stats = await self.repository.stats()
            sample = await self.repository.recent(RECENT_SAMPLE_SIZE)
        except RepositoryException as e:
            logger.warning(f"[analytics] statistics unavailable: {e}")
            stats, sample = BlockStats(), []

        result = stats.to_dict()
        latest = sample[0] if sample else None
        # Integer division, as the dashboard has always shown these
        result.update({
            "latest_block_height": latest.block_height if latest else 0,
            "latest_block_time": latest.date_time if latest else None,
            "avg_block_size": (
                sum(b.block_size for b in sample) // len(sample) if sample else 0
            ),
            "avg_fees": sum(b.fees for b in sample) // len(sample) if sample else 0,
        })
        result["formatted"] = _format_statistics(result)
        return result

    # =======================
    # 2. RECENT BLOCKS
    # =======================
    async def get_recent_blocks(self, limit: int = 20) -> List[Dict[str, Any]]:
        try:
            blocks = await self.repository.recent(limit)
        except RepositoryException as e:
            logger.warning(f"[analytics] recent blocks unavailable: {e}")
            return []
        return [_block_record(b) for b in blocks]

    # =======================
    # 3. ISSUERS
    # =======================
    async def get_issuer_summary(self, limit: int = 10) -> List[Dict[str, Any]]:
        try:
            return await self.repository.issuer_summary(limit)
        except RepositoryException as e:
            logger.warning(f"[analytics] issuer summary unavailable: {e}")
            return []

    # =======================
    # 4. DISTRIBUTION
    # =======================
    async def get_block_distribution(self) -> List[Dict[str, Any]]:
        try:
            return await self.repository.tx_distribution()
        except RepositoryException as e:
            logger.warning(f"[analytics] block distribution unavailable: {e}")
            return []

    # =======================
    # 5. HOURLY
    # =======================
    async def get_hourly_averages(self) -> List[Dict[str, Any]]:
        try:
            return await self.repository.hourly_activity(24)
        except RepositoryException as e:
            logger.warning(f"[analytics] hourly averages unavailable: {e}")
            return []

    # =======================
    # 6. EVERYTHING
    # =======================
    async def get_dashboard(self) -> Dict[str, Any]:
        last_updated = self.clock.now_truncated()
        return {
            "statistics": await self.get_statistics(),
            "recent_blocks": await self.get_recent_blocks(),
            "issuer_summary": await self.get_issuer_summary(),
            "block_distribution": await self.get_block_distribution(),
            "hourly_averages": await self.get_hourly_averages(),
            "last_updated": last_updated,
            "last_updated_display": format_timestamp(last_updated),
        }

    async def get_latest_block(self) -> Optional[Dict[str, Any]]:
        try:
            block = await self.repository.latest()
        except RepositoryException as e:
            logger.warning(f"[analytics] latest block unavailable: {e}")
            return None
        return block.to_dict() if block else None

    async def get_block(self, block_id: str) -> Optional[Dict[str, Any]]:
        try:
            block = await self.repository.by_id(block_id)
        except RepositoryException as e:
            logger.warning(f"[analytics] lookup of {block_id} failed: {e}")
            return None
        return block.to_dict() if block else None

    async def store_available(self) -> bool:
        return await self.client.ping()


# =======================
# DISPLAY VALUES
# =======================

def _format_statistics(stats: Dict[str, Any]) -> Dict[str, str]:
    return {
        "total_blocks": format_number(stats["total_blocks"]),
        "latest_block_height": format_number(stats["latest_block_height"]),
        "latest_block_time": format_timestamp(stats["latest_block_time"]),
        "total_transactions": format_number(stats["total_transactions"]),
        "avg_transactions_per_block": format_number(float(stats["avg_transactions_per_block"])),
        "avg_block_size": format_bytes(stats["avg_block_size"]),
        "avg_fees": format_ada_amount(stats["avg_fees"]),
    }


def _block_record(block: CanonicalBlock) -> Dict[str, Any]:
    record = block.to_dict()
    record["formatted"] = {
        "block_height": format_number(block.block_height),
        "date_time": format_timestamp(block.date_time),
        "block_size": format_bytes(block.block_size),
        "ada_output": format_ada_amount(block.ada_output),
        "fees": format_ada_amount(block.fees),
    }
    return record
