"""
Dashboard API Routers.
"""
from . import blocks, health, live

__all__ = ["blocks", "health", "live"]
