"""
Tests for the four matchmaking lanes and the lane cascade.
"""

import random
from collections import Counter

import pytest
from typing_extensions import override

from build_arena.config import ArenaSettings, LaneWeights
from build_arena.coverage import CoverageAggregator
from build_arena.eligibility import EligibilityIndex
from build_arena.exceptions import SamplingExhausted
from build_arena.interfaces import LaneStrategy
from build_arena.lane_selectors import (
    ContenderLane,
    CoverageLane,
    ExplorationLane,
    LaneSelector,
    SelectionContext,
    UncertaintyLane,
    lane_selector,
)
from build_arena.models import Lane, LaneChoice, VoteChoice
from build_arena.rankers.trueskill_ranker import TrueSkillRatingSystem
from build_arena.storage import SQLArenaStore
from tests.conftest import RecordVote, SeededArena


def make_context(
    store: SQLArenaStore,
    settings: ArenaSettings,
    rng: random.Random | None = None,
    requested_prompt_id: str | None = None,
) -> SelectionContext:
    eligibility = EligibilityIndex(store, settings).build()
    return SelectionContext(
        eligibility=eligibility,
        coverage=CoverageAggregator(store).compute(eligibility),
        models=store.get_models(eligibility.model_ids),
        requested_prompt_id=requested_prompt_id,
        rng=rng or random.Random(42),
    )


class StubLane(LaneStrategy):
    """Lane that returns a fixed choice and counts its calls."""

    def __init__(self, lane: Lane, choice: LaneChoice | None = None):
        self.lane = lane
        self.choice = choice
        self.calls = 0

    @override
    def try_select(self, context: SelectionContext) -> LaneChoice | None:
        self.calls += 1
        return self.choice


class TestSelectionContext:
    """Test requested-prompt handling."""

    def test_requested_prompt_constrains_candidates(self, arena: SeededArena) -> None:
        prompt = arena.prompts[1]
        context = make_context(arena.store, arena.settings, requested_prompt_id=prompt.id)

        assert context.is_constrained
        assert context.prompt_ids() == [prompt.id]
        m0, m1 = arena.model("model-0"), arena.model("model-1")
        assert context.common_prompts(m0.id, m1.id) == frozenset({prompt.id})

    def test_ineligible_request_falls_back(self, arena: SeededArena) -> None:
        context = make_context(arena.store, arena.settings, requested_prompt_id="no-such-prompt")

        assert not context.is_constrained
        assert len(context.prompt_ids()) == 3


class TestCoverageLane:
    """Test the coverage lane."""

    def test_anchors_on_lowest_coverage_model(self, arena: SeededArena, record_vote: RecordVote) -> None:
        # Arrange
        m0, m1 = arena.model("model-0"), arena.model("model-1")
        for prompt in arena.prompts:
            for vote in (VoteChoice.A, VoteChoice.A, VoteChoice.B, VoteChoice.B):
                _ = record_vote(prompt.id, m0.id, m1.id, vote)
        context = make_context(arena.store, arena.settings)

        # Act
        choice = CoverageLane().try_select(context)

        # Assert
        assert choice is not None
        assert choice.lane is Lane.COVERAGE
        assert choice.model_a_id == arena.model("model-2").id
        assert choice.model_b_id == arena.model("model-3").id
        assert choice.reason == "anchor:model-2"

    def test_repeated_rounds_close_the_coverage_gap(self, arena: SeededArena, record_vote: RecordVote) -> None:
        # Arrange
        m0, m1 = arena.model("model-0"), arena.model("model-1")
        for prompt in arena.prompts:
            for vote in (VoteChoice.A, VoteChoice.A, VoteChoice.B, VoteChoice.B):
                _ = record_vote(prompt.id, m0.id, m1.id, vote)
        trailing = {arena.model("model-2").id, arena.model("model-3").id}
        voter = random.Random(11)
        lane = CoverageLane()

        def coverage_gap() -> float:
            context = make_context(arena.store, arena.settings)
            values = [context.coverage.coverage(m.id) for m in arena.models]
            return max(values) - min(values)

        initial_gap = coverage_gap()
        gaps = [initial_gap]

        # Act
        for round_number in range(80):
            context = make_context(arena.store, arena.settings, rng=random.Random(round_number))
            choice = lane.try_select(context)
            assert choice is not None

            coverage = context.coverage
            lowest = min(coverage.coverage(m.id) for m in context.candidate_models())
            assert coverage.coverage(choice.model_a_id) == lowest
            assert coverage.coverage(choice.model_a_id) <= coverage.coverage(choice.model_b_id)
            if gaps[-1] > 0:
                assert choice.model_a_id in trailing

            vote = VoteChoice.A if voter.random() < 0.5 else VoteChoice.B
            _ = record_vote(choice.prompt_id, choice.model_a_id, choice.model_b_id, vote)
            gaps.append(coverage_gap())

        # Assert
        assert initial_gap == 1.0
        assert all(later <= earlier for earlier, later in zip(gaps, gaps[1:]))
        assert gaps[-1] < initial_gap

    def test_needs_two_models(self, store: SQLArenaStore, settings: ArenaSettings) -> None:
        context = make_context(store, settings)
        assert CoverageLane().try_select(context) is None


class TestContenderLane:
    """Test the contender lane."""

    def test_fills_adjacent_floor_first(self, arena: SeededArena) -> None:
        # Arrange
        context = make_context(arena.store, arena.settings)

        # Act
        choice = ContenderLane().try_select(context)

        # Assert
        assert choice is not None
        assert choice.reason == "adjacent-floor:model-0|model-1"
        assert {choice.model_a_id, choice.model_b_id} == {arena.model("model-0").id, arena.model("model-1").id}

    def test_bucketed_match_once_floors_are_met(self, arena_factory, record_vote: RecordVote) -> None:
        # Arrange
        arena = arena_factory(model_count=2, prompt_count=6)
        m0, m1 = arena.models
        for prompt in arena.prompts:
            _ = record_vote(prompt.id, m0.id, m1.id, VoteChoice.A)
            _ = record_vote(prompt.id, m0.id, m1.id, VoteChoice.B)
        context = make_context(arena.store, arena.settings)

        # Act
        choice = ContenderLane().try_select(context)

        # Assert
        assert choice is not None
        assert choice.reason.endswith("|nearest")
        assert choice.reason.startswith("anchor:")
        assert {choice.model_a_id, choice.model_b_id} == {m0.id, m1.id}


class TestUncertaintyLane:
    """Test the uncertainty lane."""

    def test_prefers_uncertain_anchor_and_coin_flip_opponent(
        self, store: SQLArenaStore, settings: ArenaSettings
    ) -> None:
        # Arrange
        uncertain = store.add_model("uncertain", rating=1500.0, rd=200.0)
        even = store.add_model("even", rating=1500.0, rd=0.0)
        lopsided = store.add_model("lopsided", rating=2100.0, rd=0.0)
        prompt = store.add_prompt("castle")
        for model in (uncertain, even, lopsided):
            _ = store.add_build(prompt.id, model.id, settings)
        context = make_context(store, settings)

        # Act
        choice = UncertaintyLane(TrueSkillRatingSystem()).try_select(context)

        # Assert
        assert choice is not None
        assert choice.model_a_id == uncertain.id
        assert choice.model_b_id == even.id
        assert choice.reason == "anchor:uncertain"
        assert choice.prompt_id == prompt.id


class TestExplorationLane:
    """Test the exploration lane."""

    def test_favors_rarely_voted_prompts(self, arena: SeededArena, record_vote: RecordVote) -> None:
        # Arrange
        m0, m1 = arena.model("model-0"), arena.model("model-1")
        quiet = arena.prompts[2]
        for prompt in arena.prompts[:2]:
            for _ in range(20):
                _ = record_vote(prompt.id, m0.id, m1.id, VoteChoice.A)
        context = make_context(arena.store, arena.settings, rng=random.Random(3))
        lane = ExplorationLane()

        # Act
        picks = Counter(lane.try_select(context).prompt_id for _ in range(200))  # type: ignore[union-attr]

        # Assert
        assert picks[quiet.id] > 150

    def test_respects_requested_prompt(self, arena: SeededArena) -> None:
        # Arrange
        prompt = arena.prompts[0]
        context = make_context(arena.store, arena.settings, requested_prompt_id=prompt.id)

        # Act
        choices = [ExplorationLane().try_select(context) for _ in range(20)]

        # Assert
        assert all(c is not None and c.prompt_id == prompt.id for c in choices)
        assert all(c is not None and c.model_a_id != c.model_b_id for c in choices)


class TestLaneSelector:
    """Test the primary draw and fallback cascade."""

    def test_missing_strategy_raises(self) -> None:
        with pytest.raises(ValueError, match="Missing lane strategies"):
            _ = LaneSelector([StubLane(Lane.COVERAGE)])

    def test_lane_order_puts_primary_first(self) -> None:
        selector = LaneSelector([StubLane(lane) for lane in Lane])
        assert selector.lane_order(Lane.UNCERTAINTY) == [
            Lane.UNCERTAINTY,
            Lane.COVERAGE,
            Lane.CONTENDER,
            Lane.EXPLORATION,
        ]

    def test_falls_back_when_primary_fails(self, arena: SeededArena) -> None:
        # Arrange
        m0, m1 = arena.model("model-0"), arena.model("model-1")
        valid = LaneChoice(Lane.COVERAGE, "anchor:model-0", arena.prompts[0].id, m0.id, m1.id)
        contender = StubLane(Lane.CONTENDER)
        coverage = StubLane(Lane.COVERAGE, valid)
        selector = LaneSelector(
            [coverage, contender, StubLane(Lane.UNCERTAINTY), StubLane(Lane.EXPLORATION)],
            LaneWeights(coverage=0, contender=1, uncertainty=0, exploration=0),
        )

        # Act
        choice = selector.select(make_context(arena.store, arena.settings))

        # Assert
        assert choice is valid
        assert contender.calls == 1
        assert coverage.calls == 1

    def test_invalid_choice_is_skipped(self, arena: SeededArena) -> None:
        # Arrange
        m0, m1 = arena.model("model-0"), arena.model("model-1")
        same_model = LaneChoice(Lane.COVERAGE, "bad", arena.prompts[0].id, m0.id, m0.id)
        unknown_prompt = LaneChoice(Lane.CONTENDER, "bad", "no-such-prompt", m0.id, m1.id)
        valid = LaneChoice(Lane.UNCERTAINTY, "anchor:model-0", arena.prompts[0].id, m0.id, m1.id)
        selector = LaneSelector(
            [
                StubLane(Lane.COVERAGE, same_model),
                StubLane(Lane.CONTENDER, unknown_prompt),
                StubLane(Lane.UNCERTAINTY, valid),
                StubLane(Lane.EXPLORATION),
            ],
            LaneWeights(coverage=1, contender=0, uncertainty=0, exploration=0),
        )

        # Act
        choice = selector.select(make_context(arena.store, arena.settings))

        # Assert
        assert choice is valid

    def test_all_lanes_failing_returns_none(self, arena: SeededArena) -> None:
        selector = LaneSelector([StubLane(lane) for lane in Lane])
        assert selector.select(make_context(arena.store, arena.settings)) is None

    def test_missing_primary_lane_raises(self, arena: SeededArena, monkeypatch: pytest.MonkeyPatch) -> None:
        # Arrange
        monkeypatch.setattr(lane_selector, "weighted_pick", lambda items, weight, rng=None: None)
        selector = LaneSelector([StubLane(lane) for lane in Lane])

        # Act / Assert
        with pytest.raises(SamplingExhausted, match="No lane to draw a primary from"):
            _ = selector.select(make_context(arena.store, arena.settings))

    def test_default_lanes_always_find_a_pair(self, arena: SeededArena) -> None:
        # Arrange
        selector = LaneSelector.default(TrueSkillRatingSystem())
        context = make_context(arena.store, arena.settings, rng=random.Random(9))

        # Act
        choices = [selector.select(context) for _ in range(50)]

        # Assert
        for choice in choices:
            assert choice is not None
            assert choice.model_a_id != choice.model_b_id
            assert choice.prompt_id in {p.id for p in arena.prompts}
