"""
Lane selector.

Draws a primary lane by weight, then falls back through the remaining lanes
in fixed order until one returns a valid choice.
"""

from ..config import LaneWeights
from ..exceptions import SamplingExhausted
from ..interfaces import LaneStrategy, RatingSystem
from ..logging_config import get_logger
from ..models import LANE_ORDER, Lane, LaneChoice
from .context import SelectionContext
from .contender_lane import ContenderLane
from .coverage_lane import CoverageLane
from .exploration_lane import ExplorationLane
from .sampling import weighted_pick
from .uncertainty_lane import UncertaintyLane


class LaneSelector:
    """Runs the lane cascade for one matchmaking request."""

    def __init__(self, strategies: list[LaneStrategy], weights: LaneWeights | None = None):
        """
        Initialize lane selector.

        Args:
            strategies: One strategy per lane
            weights: Primary-draw weights (defaults to 0.40/0.30/0.20/0.10)
        """
        self.strategies = {strategy.lane: strategy for strategy in strategies}
        missing = [lane.value for lane in LANE_ORDER if lane not in self.strategies]
        if missing:
            raise ValueError(f"Missing lane strategies: {missing}")
        self.weights = weights or LaneWeights()
        self.logger = get_logger("lane_selector")

    @classmethod
    def default(cls, rating_system: RatingSystem, weights: LaneWeights | None = None) -> "LaneSelector":
        return cls(
            [CoverageLane(), ContenderLane(), UncertaintyLane(rating_system), ExplorationLane()],
            weights,
        )

    def lane_order(self, primary: Lane) -> list[Lane]:
        """Primary lane first, then the rest in fixed fallback order."""
        return [primary] + [lane for lane in LANE_ORDER if lane != primary]

    def select(self, context: SelectionContext) -> LaneChoice | None:
        """
        Pick a prompt and model pair.

        Returns:
            The first valid lane choice, or None when every lane failed
        """
        lane_weights = self.weights.as_dict()
        primary = weighted_pick(LANE_ORDER, lambda lane: lane_weights[lane], context.rng)
        if primary is None:
            raise SamplingExhausted("No lane to draw a primary from")
        self.logger.debug(f"Primary lane: {primary.value}")

        for lane in self.lane_order(primary):
            choice = self.strategies[lane].try_select(context)
            if choice is None:
                self.logger.debug(f"Lane {lane.value} had no valid choice")
                continue
            if not self._is_valid(choice, context):
                self.logger.warning(f"Lane {lane.value} returned an invalid choice: {choice}")
                continue
            if lane != primary:
                self.logger.info(f"Fell back from {primary.value} to {lane.value}")
            return choice

        self.logger.warning("All lanes failed to produce a matchup")
        return None

    def _is_valid(self, choice: LaneChoice, context: SelectionContext) -> bool:
        if choice.model_a_id == choice.model_b_id:
            return False
        return choice.prompt_id in context.common_prompts(choice.model_a_id, choice.model_b_id)
