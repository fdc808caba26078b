"""
Exploration lane.

Draws a prompt in inverse proportion to its decisive votes, then two of its
models in inverse proportion to how often they have been shown.
"""

from typing_extensions import override

from ..interfaces import LaneStrategy
from ..logging_config import get_logger
from ..models import Lane, LaneChoice
from .context import SelectionContext
from .sampling import weighted_pick

# Module-level logger
logger = get_logger("exploration_lane")


class ExplorationLane(LaneStrategy):
    """Selector that spreads exposure across rarely-seen prompts and models."""

    lane = Lane.EXPLORATION

    @override
    def try_select(self, context: SelectionContext) -> LaneChoice | None:
        prompt_id = weighted_pick(
            context.prompt_ids(),
            lambda p: 1 / (context.coverage.prompt_total(p) + 1),
            context.rng,
        )
        if prompt_id is None:
            logger.debug("No prompts to explore")
            return None

        models = [
            context.models[m]
            for m in sorted(context.eligibility.models_for_prompt(prompt_id))
            if m in context.models
        ]
        if len(models) < 2:
            return None

        exposure_weight = lambda m: 1 / (m.shown_count + 1)  # noqa: E731
        anchor = weighted_pick(models, exposure_weight, context.rng)
        if anchor is None:
            return None
        opponent = weighted_pick([m for m in models if m.id != anchor.id], exposure_weight, context.rng)
        if opponent is None:
            return None

        logger.debug(f"Exploring prompt {prompt_id}: {anchor.key} vs {opponent.key}")
        return LaneChoice(
            lane=self.lane,
            reason=f"prompt:{prompt_id}",
            prompt_id=prompt_id,
            model_a_id=anchor.id,
            model_b_id=opponent.id,
        )
