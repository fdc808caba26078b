"""
Build Arena - Pairwise Matchmaking and Rating Engine

Decides which two models and which prompt to show next, and turns each
submitted vote into updated skill ratings and coverage statistics.
"""

from .config import ArenaConfig, ArenaSettings, LaneWeights
from .exceptions import ArenaError
from .interfaces import ArenaStore, BuildStore, LaneStrategy, RatingSystem, UnitOfWork, Voter
from .matchups import ArenaMatchmaker, MatchupFactory
from .models import Lane, Matchup, Model, Prompt, Vote, VoteChoice
from .votes import VoteService

__version__ = "0.1.0"
__all__ = [
    "ArenaConfig",
    "ArenaSettings",
    "LaneWeights",
    "ArenaError",
    "ArenaStore",
    "BuildStore",
    "LaneStrategy",
    "RatingSystem",
    "UnitOfWork",
    "Voter",
    "ArenaMatchmaker",
    "MatchupFactory",
    "Lane",
    "Matchup",
    "Model",
    "Prompt",
    "Vote",
    "VoteChoice",
    "VoteService",
]
