"""
TrueSkill rating system.

Uses the trueskill package on an Elo-like scale (mu=1500, sigma=350) with a
per-model dynamics factor ("volatility") that adapts to surprising results.
"""

import math
from typing import Literal

from trueskill import Rating, TrueSkill, rate_1vs1  # type: ignore[import-untyped]
from typing_extensions import override

from ..interfaces import RatingSystem
from ..models import PairOutcome, RatingState

INITIAL_RATING = 1500.0
INITIAL_RD = 350.0
INITIAL_VOLATILITY = INITIAL_RD / 100  # trueskill's default tau ratio
RD_FLOOR = 30.0
RD_CEILING = 350.0
CONSERVATIVE_SIGMAS = 2.0

# Tuning chosen for this TrueSkill environment rather than carried over from a
# production arena; adjust against real vote data before relying on them
BETA = INITIAL_RD / 2
DRAW_PROBABILITY = 0.10
VOLATILITY_FLOOR = 0.5
VOLATILITY_CEILING = 35.0
VOLATILITY_ADAPTATION = 0.5  # exp-scale step per unit of surprise above 0.5

PROVISIONAL_DECISIVE_FLOOR = 80
PROVISIONAL_PROMPT_COVERAGE_FLOOR = 0.8
PROVISIONAL_RD_FLOOR = 90.0
STABLE_DECISIVE_FLOOR = 200
STABLE_PROMPT_COVERAGE_FLOOR = 0.9
STABLE_RD_FLOOR = 60.0

StabilityTier = Literal["Provisional", "Established", "Stable"]

# Dynamics are applied per model before rating, so the shared env has tau=0
_ENV = TrueSkill(
    mu=INITIAL_RATING,
    sigma=INITIAL_RD,
    beta=BETA,
    tau=0.0,
    draw_probability=DRAW_PROBABILITY,
)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def clamp_rd(rd: float) -> float:
    return _clamp(rd, RD_FLOOR, RD_CEILING)


def expected_score(rating_a: float, rating_b: float) -> float:
    """Probability that a player rated rating_a beats one rated rating_b."""
    return 1.0 / (1.0 + 10 ** ((rating_b - rating_a) / 400.0))


def conservative_score(rating: float, rd: float) -> float:
    """Rating deflated by its own uncertainty; never above the rating."""
    return rating - CONSERVATIVE_SIGMAS * max(rd, 0.0)


def confidence_from_rd(rd: float) -> int:
    """Map rd onto 0-100, where 100 means the deviation sits at the floor."""
    fraction = (clamp_rd(rd) - RD_FLOOR) / (RD_CEILING - RD_FLOOR)
    return round((1 - fraction) * 100)


def stability_tier(decisive_votes: int, prompt_coverage: float, rd: float) -> StabilityTier:
    if (
        decisive_votes >= STABLE_DECISIVE_FLOOR
        and prompt_coverage >= STABLE_PROMPT_COVERAGE_FLOOR
        and rd <= STABLE_RD_FLOOR
    ):
        return "Stable"
    if (
        decisive_votes >= PROVISIONAL_DECISIVE_FLOOR
        and prompt_coverage >= PROVISIONAL_PROMPT_COVERAGE_FLOOR
        and rd <= PROVISIONAL_RD_FLOOR
    ):
        return "Established"
    return "Provisional"


def _to_rating(state: RatingState) -> Rating:
    """Inflate the deviation by the model's own dynamics factor."""
    sigma = math.sqrt(clamp_rd(state.rd) ** 2 + state.volatility ** 2)
    return _ENV.create_rating(mu=state.rating, sigma=sigma)


def _adapt_volatility(volatility: float, score: float, expected: float) -> float:
    surprise = abs(score - expected)
    adapted = volatility * math.exp(VOLATILITY_ADAPTATION * (surprise - 0.5))
    return _clamp(adapted, VOLATILITY_FLOOR, VOLATILITY_CEILING)


def _from_rating(rating: Rating, volatility: float) -> RatingState:
    return RatingState(
        rating=float(rating.mu),  # type: ignore[attr-defined]
        rd=clamp_rd(float(rating.sigma)),  # type: ignore[attr-defined]
        volatility=volatility,
    )


def update_rating_pair(
    a: RatingState, b: RatingState, outcome: PairOutcome
) -> tuple[RatingState, RatingState]:
    """
    Rate one game between A and B.

    Winner's rating strictly increases, loser's strictly decreases; a draw
    pulls both toward each other. Deviations shrink toward RD_FLOOR unless the
    volatility inflation outweighs the information gained.
    """
    rating_a = _to_rating(a)
    rating_b = _to_rating(b)

    if outcome is PairOutcome.A_WIN:
        new_a, new_b = rate_1vs1(rating_a, rating_b, env=_ENV)
        score_a = 1.0
    elif outcome is PairOutcome.B_WIN:
        new_b, new_a = rate_1vs1(rating_b, rating_a, env=_ENV)
        score_a = 0.0
    else:
        new_a, new_b = rate_1vs1(rating_a, rating_b, drawn=True, env=_ENV)
        score_a = 0.5

    expected_a = expected_score(a.rating, b.rating)
    volatility_a = _adapt_volatility(a.volatility, score_a, expected_a)
    volatility_b = _adapt_volatility(b.volatility, 1.0 - score_a, 1.0 - expected_a)

    return _from_rating(new_a, volatility_a), _from_rating(new_b, volatility_b)


class TrueSkillRatingSystem(RatingSystem):
    """
    TrueSkill-based rating system.

    Stateless: every call works on the RatingState values passed in, so one
    instance can be shared by all request threads.
    """

    @override
    def expected_score(self, rating_a: float, rating_b: float) -> float:
        return expected_score(rating_a, rating_b)

    @override
    def update_pair(
        self, a: RatingState, b: RatingState, outcome: PairOutcome
    ) -> tuple[RatingState, RatingState]:
        return update_rating_pair(a, b, outcome)

    @override
    def conservative_score(self, rating: float, rd: float) -> float:
        return conservative_score(rating, rd)
