"""
HTTP API.

Exposes matchmaking, voting and the leaderboard over FastAPI.
"""

from .app import create_app

__all__ = ["create_app"]
