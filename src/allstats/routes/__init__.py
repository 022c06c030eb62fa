"""
All-stats API routes.
"""

from .stats import create_stats_router

__all__ = ["create_stats_router"]
