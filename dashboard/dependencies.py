"""
Request-scoped accessors for the objects create_app() was given.
"""
from typing import Optional

from fastapi import Request

from dashboard.services import BlockAnalyticsService
from data_ingestion.ingestion_service import BlockIngestionService
from realtime.block_window import BlockWindow
from realtime.broadcaster import LiveBroadcaster


def get_analytics(request: Request) -> BlockAnalyticsService:
    return request.app.state.analytics


def get_window(request: Request) -> BlockWindow:
    return request.app.state.window


def get_broadcaster(request: Request) -> LiveBroadcaster:
    return request.app.state.broadcaster


def get_ingestion(request: Request) -> Optional[BlockIngestionService]:
    return request.app.state.ingestion
