from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dashboard.routers import blocks, health, live
from dashboard.services import BlockAnalyticsService
from data_ingestion.ingestion_service import BlockIngestionService
from realtime.block_window import BlockWindow
from realtime.broadcaster import LiveBroadcaster


def create_app(
    analytics: BlockAnalyticsService,
    window: BlockWindow,
    broadcaster: LiveBroadcaster,
    ingestion: Optional[BlockIngestionService] = None,
) -> FastAPI:
    app = FastAPI(
        title="Cardano Blocks Analytics API",
        description="Block statistics from ClickHouse and the live block window.",
        version="1.0.0",
    )

    app.state.analytics = analytics
    app.state.window = window
    app.state.broadcaster = broadcaster
    app.state.ingestion = ingestion

    # CORS (Allow local frontend development)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Restrict in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include Routers
    app.include_router(health.router)
    app.include_router(blocks.router)
    app.include_router(live.router)

    @app.get("/")
    def root():
        return {"status": "ok", "message": "Blocks Analytics API is running"}

    return app
