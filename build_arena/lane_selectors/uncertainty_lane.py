"""
Uncertainty lane.

Anchors on a model drawn in proportion to its rating deviation (boosted by
missing coverage) and pairs it with the opponent whose predicted outcome
is closest to a coin flip.
"""

from typing_extensions import override

from ..interfaces import LaneStrategy, RatingSystem
from ..logging_config import get_logger
from ..models import Lane, LaneChoice, Model
from .context import SelectionContext
from .sampling import weighted_pick

# Module-level logger
logger = get_logger("uncertainty_lane")

COVERAGE_BONUS_WEIGHT = 0.25


class UncertaintyLane(LaneStrategy):
    """Selector that spends votes where they move ratings the most."""

    lane = Lane.UNCERTAINTY

    def __init__(self, rating_system: RatingSystem):
        """Initialize uncertainty lane.

        Args:
            rating_system: Rating system used to predict matchup outcomes
        """
        self.rating_system = rating_system

    def info_gain(self, anchor: Model, candidate: Model) -> float:
        """1 for a predicted coin flip, 0 for a foregone conclusion."""
        expected = self.rating_system.expected_score(anchor.elo_rating, candidate.elo_rating)
        return 1 - 2 * abs(expected - 0.5)

    @override
    def try_select(self, context: SelectionContext) -> LaneChoice | None:
        models = [m for m in context.candidate_models() if context.opponents_of(m)]
        if len(models) < 2:
            logger.debug("Insufficient models for uncertainty lane")
            return None

        coverage = context.coverage
        anchor = weighted_pick(
            models,
            lambda m: m.rating_deviation * (1 + (1 - coverage.coverage(m.id))),
            context.rng,
        )
        if anchor is None:
            return None

        def value(candidate: Model) -> float:
            coverage_bonus = 1 / (coverage.pair(anchor.id, candidate.id) + 1)
            return self.info_gain(anchor, candidate) + COVERAGE_BONUS_WEIGHT * coverage_bonus

        opponents = sorted(context.opponents_of(anchor), key=lambda m: (m.display_name, m.id))
        opponent = max(opponents, key=value)
        prompt_id = context.choose_prompt(anchor.id, opponent.id, self.lane)
        if prompt_id is None:
            return None

        logger.debug(
            f"Uncertainty anchor {anchor.key} (rd {anchor.rating_deviation:.1f}) vs {opponent.key} value={value(opponent):.3f}"
        )
        return LaneChoice(
            lane=self.lane,
            reason=f"anchor:{anchor.key}",
            prompt_id=prompt_id,
            model_a_id=anchor.id,
            model_b_id=opponent.id,
        )
