"""
Service wiring.

Builds the store, matchmaker, vote service and leaderboard from one config
so the API, CLI and simulation share the same object graph.
"""

import random
from dataclasses import dataclass

from .cache import StatsCache
from .config import ArenaConfig
from .eligibility import EligibilityIndex
from .lane_selectors import LaneSelector
from .leaderboard import LeaderboardService
from .matchups import ArenaMatchmaker, MatchupFactory
from .rankers import RatingEngine, TrueSkillRatingSystem
from .storage import SQLArenaStore
from .votes import VoteService


@dataclass
class ArenaServices:
    config: ArenaConfig
    store: SQLArenaStore
    matchmaker: ArenaMatchmaker
    votes: VoteService
    leaderboard: LeaderboardService
    eligibility: EligibilityIndex
    cache: StatsCache

    @classmethod
    def build(
        cls,
        config: ArenaConfig,
        store: SQLArenaStore | None = None,
        rng: random.Random | None = None,
    ) -> "ArenaServices":
        """
        Wire up every arena service.

        Args:
            config: Arena configuration
            store: Existing store (defaults to one on config.database_url)
            rng: Shared random source for sampling and side assignment
        """
        store = store or SQLArenaStore(config.database_url)
        rng = rng or random.Random()
        rating_system = TrueSkillRatingSystem()
        cache = StatsCache(config.stats_cache_ttl)

        factory = MatchupFactory(store, store, config.settings, rng)
        matchmaker = ArenaMatchmaker(
            store,
            LaneSelector.default(rating_system, config.lane_weights),
            factory,
            config.settings,
            rng,
        )
        return cls(
            config=config,
            store=store,
            matchmaker=matchmaker,
            votes=VoteService(store, RatingEngine(rating_system), cache),
            leaderboard=LeaderboardService(store, config.settings, cache),
            eligibility=EligibilityIndex(store, config.settings),
            cache=cache,
        )
