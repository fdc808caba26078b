"""
Ranker implementations.

Provides the rating math and the engine that applies it to votes.

Available implementations:
- TrueSkillRatingSystem: TrueSkill on an Elo-like scale with per-model
  volatility and a conservative (mu - 2*rd) ranking score
- RatingEngine: applies one vote to both models inside a unit of work
"""

from .rating_engine import RatingEngine, RatingUpdate
from .trueskill_ranker import TrueSkillRatingSystem

__all__ = ["RatingEngine", "RatingUpdate", "TrueSkillRatingSystem"]
