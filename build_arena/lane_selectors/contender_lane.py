"""
Contender lane.

Refines the top of the leaderboard: first fills vote and prompt floors
between adjacent top-ranked models, then pits a random contender against a
rating-distance-ordered opponent bucket.
"""

from dataclasses import dataclass

from typing_extensions import override

from ..interfaces import LaneStrategy
from ..logging_config import get_logger
from ..models import Lane, LaneChoice, Model
from .context import SelectionContext
from .sampling import weighted_pick

# Module-level logger
logger = get_logger("contender_lane")

CONTENDER_POOL_SIZE = 8
CHALLENGER_POOL_SIZE = 8
PAIR_VOTE_FLOOR = 12
PAIR_PROMPT_FLOOR = 6

# (probability, bucket order) for the opponent search
BUCKET_ORDERS: tuple[tuple[float, tuple[str, ...]], ...] = (
    (0.7, ("nearest", "contenders", "challengers")),
    (0.2, ("contenders", "nearest", "challengers")),
    (0.1, ("challengers", "nearest", "contenders")),
)


@dataclass
class _AdjacentPair:
    upper: Model
    lower: Model
    pair_votes: int
    pair_prompts: int

    @property
    def prompt_deficit(self) -> int:
        return max(0, PAIR_PROMPT_FLOOR - self.pair_prompts)

    @property
    def vote_deficit(self) -> int:
        return max(0, PAIR_VOTE_FLOOR - self.pair_votes)

    @property
    def is_deficient(self) -> bool:
        return self.pair_votes < PAIR_VOTE_FLOOR or self.pair_prompts < PAIR_PROMPT_FLOOR


class ContenderLane(LaneStrategy):
    """Selector that sharpens the ordering among the top-ranked models."""

    lane = Lane.CONTENDER

    @override
    def try_select(self, context: SelectionContext) -> LaneChoice | None:
        ranked = sorted(
            context.candidate_models(),
            key=lambda m: (-m.conservative_rating, m.display_name, m.id),
        )
        contenders = ranked[:CONTENDER_POOL_SIZE]
        challengers = ranked[CONTENDER_POOL_SIZE:CONTENDER_POOL_SIZE + CHALLENGER_POOL_SIZE]
        if len(contenders) < 2:
            logger.debug("Insufficient contenders")
            return None

        choice = self._fill_adjacent_floor(context, contenders)
        if choice is not None:
            return choice
        return self._bucketed_match(context, contenders, challengers)

    def _fill_adjacent_floor(self, context: SelectionContext, contenders: list[Model]) -> LaneChoice | None:
        deficient: list[_AdjacentPair] = []
        for upper, lower in zip(contenders, contenders[1:]):
            if not context.shares_prompt(upper.id, lower.id):
                continue
            pair = _AdjacentPair(
                upper=upper,
                lower=lower,
                pair_votes=context.coverage.pair(upper.id, lower.id),
                pair_prompts=context.coverage.pair_prompts(upper.id, lower.id),
            )
            if pair.is_deficient:
                deficient.append(pair)

        if not deficient:
            return None

        target = min(
            deficient,
            key=lambda p: (-p.prompt_deficit, -p.vote_deficit, p.pair_prompts, p.pair_votes),
        )
        anchor, opponent = (target.upper, target.lower) if context.rng.random() < 0.5 else (target.lower, target.upper)
        prompt_id = context.choose_prompt(anchor.id, opponent.id, self.lane)
        if prompt_id is None:
            return None

        logger.debug(
            f"Adjacent floor: {target.upper.key}|{target.lower.key} votes={target.pair_votes} prompts={target.pair_prompts}"
        )
        return LaneChoice(
            lane=self.lane,
            reason=f"adjacent-floor:{target.upper.key}|{target.lower.key}",
            prompt_id=prompt_id,
            model_a_id=anchor.id,
            model_b_id=opponent.id,
        )

    def _bucketed_match(
        self, context: SelectionContext, contenders: list[Model], challengers: list[Model]
    ) -> LaneChoice | None:
        anchor = context.rng.choice(contenders)
        anchor_rank = contenders.index(anchor)

        def by_distance(models: list[Model]) -> list[Model]:
            return sorted(
                models,
                key=lambda m: (abs(m.conservative_rating - anchor.conservative_rating), m.display_name, m.id),
            )

        nearest = [m for i, m in enumerate(contenders) if abs(i - anchor_rank) == 1]
        others = [m for i, m in enumerate(contenders) if abs(i - anchor_rank) > 1]
        buckets = {
            "nearest": by_distance(nearest),
            "contenders": by_distance(others),
            "challengers": by_distance(challengers),
        }

        picked = weighted_pick(BUCKET_ORDERS, lambda entry: entry[0], context.rng)
        order = picked[1] if picked else BUCKET_ORDERS[0][1]

        for bucket in order:
            opponent = next((m for m in buckets[bucket] if context.shares_prompt(anchor.id, m.id)), None)
            if opponent is None:
                continue
            prompt_id = context.choose_prompt(anchor.id, opponent.id, self.lane)
            if prompt_id is None:
                continue
            logger.debug(f"Contender {anchor.key} vs {opponent.key} from bucket {bucket}")
            return LaneChoice(
                lane=self.lane,
                reason=f"anchor:{anchor.key}|{bucket}",
                prompt_id=prompt_id,
                model_a_id=anchor.id,
                model_b_id=opponent.id,
            )

        logger.debug(f"No opponent shares a prompt with contender {anchor.key}")
        return None
