from typing import Optional

from fastapi import APIRouter, Depends

from dashboard.dependencies import get_analytics, get_broadcaster, get_ingestion, get_window
from dashboard.schemas import HealthResponse, HealthStatus
from dashboard.services import BlockAnalyticsService
from data_ingestion.ingestion_service import BlockIngestionService
from realtime.block_window import BlockWindow
from realtime.broadcaster import LiveBroadcaster

router = APIRouter(prefix="/health", tags=["System Health"])


@router.get("", response_model=HealthResponse)
async def get_health(
    service: BlockAnalyticsService = Depends(get_analytics),
    window: BlockWindow = Depends(get_window),
    broadcaster: LiveBroadcaster = Depends(get_broadcaster),
    ingestion: Optional[BlockIngestionService] = Depends(get_ingestion),
):
    """
    Store reachability and in-memory pipeline state.

    An unreachable store degrades the status but the live window
    keeps working, so this never returns an error code.
    """
    reachable = await service.store_available()
    return HealthResponse(
        success=True,
        data=HealthStatus(
            status="ok" if reachable else "degraded",
            store_reachable=reachable,
            store_latency_ms=service.client.last_latency_ms,
            window_size=window.size(),
            window_capacity=window.capacity,
            subscribers=broadcaster.subscriber_count,
            ingestion=ingestion.get_health_status() if ingestion else None,
        ),
    )
