"""
Coverage lane.

Anchors on the model with the lowest prompt coverage and pairs it with the
opponent it has met least, so thinly-voted models catch up.
"""

from typing_extensions import override

from ..interfaces import LaneStrategy
from ..logging_config import get_logger
from ..models import Lane, LaneChoice
from .context import SelectionContext

# Module-level logger
logger = get_logger("coverage_lane")


class CoverageLane(LaneStrategy):
    """Selector that prioritizes models with the least prompt coverage."""

    lane = Lane.COVERAGE

    @override
    def try_select(self, context: SelectionContext) -> LaneChoice | None:
        models = context.candidate_models()
        if len(models) < 2:
            logger.debug("Insufficient models for coverage lane")
            return None

        coverage = context.coverage
        ranked = sorted(
            models,
            key=lambda m: (coverage.coverage(m.id), m.shown_count, m.display_name, m.id),
        )

        for anchor in ranked:
            opponents = context.opponents_of(anchor)
            if not opponents:
                continue

            anchor_coverage = coverage.coverage(anchor.id)
            opponent = min(
                opponents,
                key=lambda m: (
                    coverage.pair(anchor.id, m.id),
                    abs(anchor_coverage - coverage.coverage(m.id)),
                    m.display_name,
                    m.id,
                ),
            )
            prompt_id = context.choose_prompt(anchor.id, opponent.id, self.lane)
            if prompt_id is None:
                continue

            logger.debug(
                f"Coverage anchor {anchor.key} (coverage {anchor_coverage:.2f}) vs {opponent.key} on {prompt_id}"
            )
            return LaneChoice(
                lane=self.lane,
                reason=f"anchor:{anchor.key}",
                prompt_id=prompt_id,
                model_a_id=anchor.id,
                model_b_id=opponent.id,
            )

        return None
