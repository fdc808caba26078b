"""
Rating engine.

Applies one vote to both models' rating fields and outcome counters inside
the caller's unit of work.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from loguru import Logger

from ..exceptions import NotFound
from ..interfaces import RatingSystem, UnitOfWork
from ..logging_config import get_logger
from ..models import Model, PairOutcome, RatingState, VoteChoice


@dataclass
class RatingUpdate:
    """Before/after rating states of one rated vote."""

    outcome: PairOutcome
    before_a: RatingState
    before_b: RatingState
    after_a: RatingState
    after_b: RatingState


class RatingEngine:
    """
    Turns a vote into rating and record updates.

    Must be called inside the same unit of work that inserted the vote, so
    the vote row and both models' writes commit or roll back together.
    """

    def __init__(self, rating_system: RatingSystem):
        self.rating_system: RatingSystem = rating_system
        self.logger: Logger = get_logger("rating_engine")

    def apply(
        self, uow: UnitOfWork, model_a_id: str, model_b_id: str, choice: VoteChoice
    ) -> RatingUpdate | None:
        """
        Apply a vote between model A and model B.

        Returns:
            The rating change, or None for BOTH_BAD (counters only)
        """
        if choice is VoteChoice.BOTH_BAD:
            uow.increment_outcome(model_a_id, "both_bad_count")
            uow.increment_outcome(model_b_id, "both_bad_count")
            self.logger.info(f"Both-bad vote: {model_a_id} and {model_b_id}, ratings unchanged")
            return None

        models = uow.load_models_for_update([model_a_id, model_b_id])
        model_a = self._require(models, model_a_id)
        model_b = self._require(models, model_b_id)

        outcome = PairOutcome.from_choice(choice)
        before_a = RatingState.of(model_a)
        before_b = RatingState.of(model_b)
        after_a, after_b = self.rating_system.update_pair(before_a, before_b, outcome)

        uow.save_rating(model_a_id, after_a, self.rating_system.conservative_score(after_a.rating, after_a.rd))
        uow.save_rating(model_b_id, after_b, self.rating_system.conservative_score(after_b.rating, after_b.rd))

        if outcome is PairOutcome.A_WIN:
            uow.increment_outcome(model_a_id, "win_count")
            uow.increment_outcome(model_b_id, "loss_count")
        elif outcome is PairOutcome.B_WIN:
            uow.increment_outcome(model_a_id, "loss_count")
            uow.increment_outcome(model_b_id, "win_count")
        else:
            uow.increment_outcome(model_a_id, "draw_count")
            uow.increment_outcome(model_b_id, "draw_count")

        self.logger.info(f"Rating update: {model_a.key} vs {model_b.key} ({outcome.value})")
        self.logger.info(f"  {model_a.key}: {before_a.rating:.1f}->{after_a.rating:.1f} (rd: {before_a.rd:.1f}->{after_a.rd:.1f})")
        self.logger.info(f"  {model_b.key}: {before_b.rating:.1f}->{after_b.rating:.1f} (rd: {before_b.rd:.1f}->{after_b.rd:.1f})")

        return RatingUpdate(
            outcome=outcome,
            before_a=before_a,
            before_b=before_b,
            after_a=after_a,
            after_b=after_b,
        )

    @staticmethod
    def _require(models: dict[str, Model], model_id: str) -> Model:
        model = models.get(model_id)
        if model is None:
            raise NotFound(f"Model not found: {model_id}")
        return model
