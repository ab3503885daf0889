"""
Dashboard Package.

Read side of the pipeline: aggregate queries over ClickHouse and the
live block window, served over HTTP and a websocket.

Modules:
- main: create_app() FastAPI factory
- services: BlockAnalyticsService aggregation queries
- formatting: Display helpers (numbers, ADA amounts, sizes)
- routers/: /blocks, /live and /health endpoints
"""

from dashboard.main import create_app
from dashboard.services import BlockAnalyticsService

__all__ = ["create_app", "BlockAnalyticsService"]
