"""
Pydantic schemas for Dashboard API responses.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

# =======================
# COMMON
# =======================

class BaseResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)

# =======================
# 1. BLOCKS
# =======================

class BlockRecord(BaseModel):
    block_id: str
    block_height: int
    block_slot: int
    block_size: int
    issuer: str
    tx_count: int
    ada_output: int  # lovelace
    fees: int  # lovelace
    date_time: datetime
    inserted_at: Optional[datetime] = None
    formatted: Optional[Dict[str, str]] = None  # display strings

class LiveBlockRecord(BlockRecord):
    is_real_time: bool = True

class BlockResponse(BaseResponse):
    data: Optional[BlockRecord] = None

class BlockListResponse(BaseResponse):
    data: List[BlockRecord]

class WindowResponse(BaseResponse):
    capacity: int
    data: List[LiveBlockRecord]

# =======================
# 2. STATISTICS
# =======================

class BlockStatistics(BaseModel):
    total_blocks: int = 0
    avg_height: float = 0
    max_height: int = 0
    min_height: int = 0
    total_transactions: int = 0
    avg_transactions_per_block: float = 0
    latest_block_height: int = 0
    latest_block_time: Optional[datetime] = None
    avg_block_size: int = 0
    avg_fees: int = 0
    formatted: Dict[str, str] = Field(default_factory=dict)

class StatisticsResponse(BaseResponse):
    data: BlockStatistics

# =======================
# 3. AGGREGATES
# =======================

class IssuerSummary(BaseModel):
    issuer: str
    block_count: int
    total_transactions: int
    avg_transactions: float

class IssuerSummaryResponse(BaseResponse):
    data: List[IssuerSummary]

class TxRangeBucket(BaseModel):
    range: str  # Empty (0), Low (1-10), ...
    count: int
    avg_tx_count: float

class DistributionResponse(BaseResponse):
    data: List[TxRangeBucket]

class HourlyAverage(BaseModel):
    hour: int  # 0-23
    block_count: int
    avg_transactions: float
    total_transactions: int

class HourlyResponse(BaseResponse):
    data: List[HourlyAverage]

# =======================
# 4. DASHBOARD
# =======================

class DashboardData(BaseModel):
    statistics: BlockStatistics
    recent_blocks: List[BlockRecord]
    issuer_summary: List[IssuerSummary]
    block_distribution: List[TxRangeBucket]
    hourly_averages: List[HourlyAverage]
    last_updated: datetime
    last_updated_display: str = ""

class DashboardResponse(BaseResponse):
    data: DashboardData

# =======================
# 5. HEALTH
# =======================

class HealthStatus(BaseModel):
    status: str  # ok, degraded
    store_reachable: bool
    store_latency_ms: Optional[float] = None
    window_size: int
    window_capacity: int
    subscribers: int
    ingestion: Optional[Dict[str, Any]] = None

class HealthResponse(BaseResponse):
    data: HealthStatus
