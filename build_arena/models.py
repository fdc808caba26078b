"""
Core dataclasses for the build arena.

Defines models, prompts, builds, matchups and votes, plus the composite
keys used by the coverage aggregates.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, NamedTuple

from .exceptions import ValidationError


class VoteChoice(str, Enum):
    """What a rater picked for a matchup."""

    A = "A"
    B = "B"
    TIE = "TIE"
    BOTH_BAD = "BOTH_BAD"

    @property
    def is_decisive(self) -> bool:
        return self in (VoteChoice.A, VoteChoice.B)

    @property
    def is_rated(self) -> bool:
        """Whether the vote carries a score (win, loss or draw)."""
        return self is not VoteChoice.BOTH_BAD


class PairOutcome(str, Enum):
    """Rating outcome from side A's point of view."""

    A_WIN = "A_WIN"
    B_WIN = "B_WIN"
    DRAW = "DRAW"

    @classmethod
    def from_choice(cls, choice: VoteChoice) -> "PairOutcome":
        if choice is VoteChoice.A:
            return cls.A_WIN
        if choice is VoteChoice.B:
            return cls.B_WIN
        if choice is VoteChoice.TIE:
            return cls.DRAW
        raise ValidationError(f"{choice.value} has no rating outcome")


class Lane(str, Enum):
    """Named matchmaking strategy."""

    COVERAGE = "coverage"
    CONTENDER = "contender"
    UNCERTAINTY = "uncertainty"
    EXPLORATION = "exploration"


# Fallback order once the primary lane has failed
LANE_ORDER: tuple[Lane, ...] = (
    Lane.COVERAGE,
    Lane.CONTENDER,
    Lane.UNCERTAINTY,
    Lane.EXPLORATION,
)


class PairKey(NamedTuple):
    """Order-independent key for a model pair."""

    low: str
    high: str

    @classmethod
    def of(cls, model_a: str, model_b: str) -> "PairKey":
        if model_a == model_b:
            raise ValidationError(f"a pair needs two distinct models, got {model_a!r} twice")
        return cls(model_a, model_b) if model_a < model_b else cls(model_b, model_a)


class ModelPromptKey(NamedTuple):
    model_id: str
    prompt_id: str


class PairPromptKey(NamedTuple):
    pair: PairKey
    prompt_id: str


@dataclass
class Model:
    """An AI model competing in the arena, with its rating state and counters."""

    id: str
    key: str
    provider: str
    display_name: str
    elo_rating: float = 1500.0
    conservative_rating: float = 800.0
    rating_deviation: float = 350.0
    rating_volatility: float = 3.5
    shown_count: int = 0
    win_count: int = 0
    loss_count: int = 0
    draw_count: int = 0
    both_bad_count: int = 0
    enabled: bool = True
    is_baseline: bool = False

    def __post_init__(self) -> None:
        if not self.id:
            raise ValidationError("model id cannot be empty")
        if not self.key:
            raise ValidationError("model key cannot be empty")

    @property
    def decisive_votes(self) -> int:
        """Votes that produced a rating update (wins, losses and draws)."""
        return self.win_count + self.loss_count + self.draw_count

    @property
    def total_votes(self) -> int:
        return self.decisive_votes + self.both_bad_count


@dataclass
class Prompt:
    id: str
    text: str
    active: bool = True
    created_at: float = field(default_factory=time.time)


@dataclass
class Build:
    """A model's voxel build for a prompt under fixed settings.

    The payload is either stored inline or referenced by a storage pointer.
    """

    id: str
    prompt_id: str
    model_id: str
    grid_size: int
    palette: str
    mode: str
    block_count: int = 0
    payload: Any = None
    storage_pointer: str | None = None
    byte_size: int | None = None
    checksum: str | None = None


@dataclass
class Matchup:
    """One persisted "prompt + two models + their builds" shown to a voter."""

    id: str
    prompt_id: str
    model_a_id: str
    model_b_id: str
    build_a_id: str
    build_b_id: str
    sampling_lane: Lane | None = None
    sampling_reason: str | None = None
    created_at: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        if self.model_a_id == self.model_b_id:
            raise ValidationError("matchup models must be distinct")


@dataclass
class Vote:
    id: str
    matchup_id: str
    session_id: str
    choice: VoteChoice
    created_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class VoteOutcome:
    """A vote joined with its matchup, as read by the aggregators."""

    prompt_id: str
    model_a_id: str
    model_b_id: str
    choice: VoteChoice
    created_at: float = 0.0

    def score_for(self, model_id: str) -> float | None:
        """Score for one side: win=1, loss=0, draw=0.5, BOTH_BAD=None."""
        if self.choice is VoteChoice.BOTH_BAD:
            return None
        if self.choice is VoteChoice.TIE:
            return 0.5
        winner = self.model_a_id if self.choice is VoteChoice.A else self.model_b_id
        return 1.0 if model_id == winner else 0.0

    def opponent_of(self, model_id: str) -> str:
        return self.model_b_id if model_id == self.model_a_id else self.model_a_id


@dataclass
class LaneChoice:
    """What a lane strategy picked: the anchor is model_a, the opponent model_b."""

    lane: Lane
    reason: str
    prompt_id: str
    model_a_id: str
    model_b_id: str


@dataclass
class MatchupSide:
    model: Model
    build: Build


@dataclass
class CreatedMatchup:
    """A persisted matchup together with the display-side models and builds."""

    matchup: Matchup
    prompt: Prompt
    a: MatchupSide
    b: MatchupSide


@dataclass(frozen=True)
class RatingState:
    """One model's rating, deviation and volatility."""

    rating: float
    rd: float
    volatility: float

    @classmethod
    def of(cls, model: Model) -> "RatingState":
        return cls(
            rating=model.elo_rating,
            rd=model.rating_deviation,
            volatility=model.rating_volatility,
        )
