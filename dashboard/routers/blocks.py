from fastapi import APIRouter, Depends, HTTPException, Query

from dashboard.dependencies import get_analytics
from dashboard.schemas import (
    BlockListResponse,
    BlockResponse,
    DashboardResponse,
    DistributionResponse,
    HourlyResponse,
    IssuerSummaryResponse,
    StatisticsResponse,
)
from dashboard.services import BlockAnalyticsService

router = APIRouter(prefix="/blocks", tags=["Blocks"])


@router.get("/stats", response_model=StatisticsResponse)
async def get_statistics(service: BlockAnalyticsService = Depends(get_analytics)):
    """
    Table-wide statistics plus averages over the last 100 blocks.
    """
    return StatisticsResponse(success=True, data=await service.get_statistics())


@router.get("/recent", response_model=BlockListResponse)
async def get_recent_blocks(
    limit: int = Query(20, ge=1, le=500),
    service: BlockAnalyticsService = Depends(get_analytics),
):
    return BlockListResponse(success=True, data=await service.get_recent_blocks(limit))


@router.get("/issuers", response_model=IssuerSummaryResponse)
async def get_issuer_summary(
    limit: int = Query(10, ge=1, le=100),
    service: BlockAnalyticsService = Depends(get_analytics),
):
    return IssuerSummaryResponse(success=True, data=await service.get_issuer_summary(limit))


@router.get("/distribution", response_model=DistributionResponse)
async def get_block_distribution(service: BlockAnalyticsService = Depends(get_analytics)):
    return DistributionResponse(success=True, data=await service.get_block_distribution())


@router.get("/hourly", response_model=HourlyResponse)
async def get_hourly_averages(service: BlockAnalyticsService = Depends(get_analytics)):
    """
    Per-hour activity over the last 24 hours.
    """
    return HourlyResponse(success=True, data=await service.get_hourly_averages())


@router.get("/latest", response_model=BlockResponse)
async def get_latest_block(service: BlockAnalyticsService = Depends(get_analytics)):
    block = await service.get_latest_block()
    return BlockResponse(
        success=True,
        message=None if block else "No blocks stored yet",
        data=block,
    )


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(service: BlockAnalyticsService = Depends(get_analytics)):
    return DashboardResponse(success=True, data=await service.get_dashboard())


@router.get("/{block_id}", response_model=BlockResponse)
async def get_block(block_id: str, service: BlockAnalyticsService = Depends(get_analytics)):
    block = await service.get_block(block_id)
    if block is None:
        raise HTTPException(status_code=404, detail=f"Block {block_id} not found")
    return BlockResponse(success=True, data=block)
