"""
Abstract base classes defining the interfaces for the build arena.

All interfaces are synchronous; each HTTP request runs them on its own
worker thread.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Literal, TypedDict

from .models import (
    Build,
    CreatedMatchup,
    Lane,
    LaneChoice,
    Matchup,
    Model,
    PairOutcome,
    Prompt,
    RatingState,
    Vote,
    VoteChoice,
    VoteOutcome,
)

if TYPE_CHECKING:
    from .config import ArenaSettings
    from .lane_selectors.context import SelectionContext

OutcomeCounter = Literal["win_count", "loss_count", "draw_count", "both_bad_count"]


class ScoreDispersion(TypedDict):
    """Per-model prompt score dispersion."""
    meanScore: float | None
    scoreVariance: float | None
    scoreSpread: float | None
    consistency: int | None
    coveredPrompts: int
    activePrompts: int
    promptCoverage: float
    sampledPrompts: int
    sampledVotes: int


class RecentForm(TypedDict):
    recentForm: float | None
    priorForm: float | None
    recentDelta: float | None


class BuildStore(ABC):
    """Collaborator answering "give me the build for this prompt, model and settings"."""

    @abstractmethod
    def get_build(self, prompt_id: str, model_id: str, settings: "ArenaSettings") -> Build | None:
        """Return the build row, or None when it was never seeded."""
        pass


class UnitOfWork(ABC):
    """Writes that commit or roll back together."""

    @abstractmethod
    def insert_matchup(self, matchup: Matchup) -> None:
        pass

    @abstractmethod
    def increment_shown_count(self, model_ids: Sequence[str]) -> None:
        """Add one exposure to each model; applied database-side."""
        pass

    @abstractmethod
    def insert_vote(self, vote: Vote) -> None:
        pass

    @abstractmethod
    def load_models_for_update(self, model_ids: Sequence[str]) -> dict[str, Model]:
        """Read model rows inside the transaction, locking them where supported."""
        pass

    @abstractmethod
    def save_rating(self, model_id: str, state: RatingState, conservative_rating: float) -> None:
        pass

    @abstractmethod
    def increment_outcome(self, model_id: str, counter: OutcomeCounter) -> None:
        pass


class ArenaStore(ABC):
    """Interface for reading arena state and opening units of work."""

    @abstractmethod
    def eligible_build_pairs(self, settings: "ArenaSettings") -> list[tuple[str, str]]:
        """
        Distinct (prompt_id, model_id) pairs with a build under the settings.

        Only enabled, non-baseline models and active prompts are included.
        """
        pass

    @abstractmethod
    def list_models(self, enabled_only: bool = True) -> list[Model]:
        """Return models; enabled_only also drops baselines."""
        pass

    @abstractmethod
    def get_models(self, model_ids: Iterable[str]) -> dict[str, Model]:
        pass

    @abstractmethod
    def get_model_by_key(self, key: str) -> Model | None:
        pass

    @abstractmethod
    def list_prompts(self, active_only: bool = True) -> list[Prompt]:
        """Return prompts ordered by creation time."""
        pass

    @abstractmethod
    def get_prompt(self, prompt_id: str) -> Prompt | None:
        pass

    @abstractmethod
    def get_matchup(self, matchup_id: str) -> Matchup | None:
        pass

    @abstractmethod
    def load_vote_outcomes(
        self,
        choices: Iterable[VoteChoice] | None = None,
        model_id: str | None = None,
    ) -> list[VoteOutcome]:
        """
        Load votes joined with their matchups, oldest first.

        Args:
            choices: Restrict to these choices (None = all)
            model_id: Restrict to matchups involving this model
        """
        pass

    @abstractmethod
    def list_builds_for_model(self, model_id: str, settings: "ArenaSettings") -> list[Build]:
        pass

    @abstractmethod
    def unit_of_work(self) -> AbstractContextManager[UnitOfWork]:
        """Open a transaction; commit on normal exit, roll back on exception."""
        pass


class RatingSystem(ABC):
    """Pure rating math: expected score, pair update, conservative score."""

    @abstractmethod
    def expected_score(self, rating_a: float, rating_b: float) -> float:
        """Probability that A beats B."""
        pass

    @abstractmethod
    def update_pair(
        self, a: RatingState, b: RatingState, outcome: PairOutcome
    ) -> tuple[RatingState, RatingState]:
        """
        Return updated states for both sides.

        The winner's rating strictly increases and the loser's strictly
        decreases; deviations shrink toward a floor.
        """
        pass

    @abstractmethod
    def conservative_score(self, rating: float, rd: float) -> float:
        """Pessimistic rating: non-decreasing in rating, non-increasing in rd, <= rating."""
        pass


class LaneStrategy(ABC):
    """One named matchmaking strategy."""

    lane: Lane

    @abstractmethod
    def try_select(self, context: "SelectionContext") -> LaneChoice | None:
        """
        Pick a prompt, anchor and opponent.

        Returns:
            The choice, or None when this lane has nothing valid to offer
        """
        pass


class Voter(ABC):
    """Something that answers a matchup with a vote."""

    @abstractmethod
    def vote(self, created: CreatedMatchup) -> VoteChoice:
        pass

