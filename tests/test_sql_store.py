"""
Tests for SQLArenaStore.
"""

import pytest
from sqlalchemy.exc import IntegrityError

from build_arena.config import ArenaSettings
from build_arena.models import RatingState, VoteChoice
from build_arena.storage import SQLArenaStore
from build_arena.storage.sql_store import payload_checksum
from tests.conftest import RecordVote, SeededArena


class TestSeeding:
    """Test model, prompt and build seeding."""

    def test_build_payload_round_trip(self, store: SQLArenaStore, settings: ArenaSettings) -> None:
        # Arrange
        model = store.add_model("m")
        prompt = store.add_prompt("a lighthouse")
        payload = {"blocks": [{"x": 1, "y": 2, "z": 3, "type": "stone"}, {"x": 1, "y": 3, "z": 3, "type": "glass"}]}

        # Act
        _ = store.add_build(prompt.id, model.id, settings, payload=payload)
        build = store.get_build(prompt.id, model.id, settings)

        # Assert
        assert build is not None
        assert build.payload == payload
        assert build.block_count == 2
        assert build.checksum == payload_checksum(payload)
        assert build.byte_size is not None and build.byte_size > 0

    def test_build_lookup_respects_settings(self, store: SQLArenaStore, settings: ArenaSettings) -> None:
        model = store.add_model("m")
        prompt = store.add_prompt("p")
        _ = store.add_build(prompt.id, model.id, settings)

        assert store.get_build(prompt.id, model.id, ArenaSettings(mode="fast")) is None
        assert store.list_builds_for_model(model.id, ArenaSettings(palette="full")) == []

    def test_duplicate_build_is_rejected(self, store: SQLArenaStore, settings: ArenaSettings) -> None:
        model = store.add_model("m")
        prompt = store.add_prompt("p")
        _ = store.add_build(prompt.id, model.id, settings)

        with pytest.raises(IntegrityError):
            _ = store.add_build(prompt.id, model.id, settings)

    def test_list_models_orders_and_filters(self, store: SQLArenaStore) -> None:
        _ = store.add_model("zeta", display_name="Zeta")
        _ = store.add_model("alpha", display_name="Alpha")
        _ = store.add_model("off", display_name="Beta", enabled=False)
        _ = store.add_model("base", display_name="Base", is_baseline=True)

        assert [m.key for m in store.list_models()] == ["alpha", "zeta"]
        assert [m.key for m in store.list_models(enabled_only=False)] == ["alpha", "base", "off", "zeta"]

    def test_checksum_ignores_key_order(self) -> None:
        assert payload_checksum({"a": 1, "b": 2}) == payload_checksum({"b": 2, "a": 1})


class TestUnitOfWork:
    """Test transactional writes."""

    def test_commits_on_success(self, arena: SeededArena) -> None:
        model = arena.model("model-0")

        with arena.store.unit_of_work() as uow:
            uow.increment_shown_count([model.id, model.id])
            uow.increment_outcome(model.id, "win_count")
            uow.save_rating(model.id, RatingState(1600.0, 120.0, 4.0), 1360.0)

        updated = arena.store.get_model_by_key("model-0")
        assert updated is not None
        assert updated.shown_count == 2
        assert updated.win_count == 1
        assert updated.elo_rating == 1600.0
        assert updated.conservative_rating == 1360.0

    def test_rolls_back_on_error(self, arena: SeededArena) -> None:
        model = arena.model("model-0")

        with pytest.raises(RuntimeError):
            with arena.store.unit_of_work() as uow:
                uow.increment_shown_count([model.id])
                raise RuntimeError("boom")

        unchanged = arena.store.get_model_by_key("model-0")
        assert unchanged is not None
        assert unchanged.shown_count == 0

    def test_unknown_outcome_counter_is_rejected(self, arena: SeededArena) -> None:
        model = arena.model("model-0")

        with pytest.raises(ValueError, match="Unknown outcome counter"):
            with arena.store.unit_of_work() as uow:
                uow.increment_outcome(model.id, "shown_count")  # type: ignore[arg-type]


class TestVoteOutcomes:
    """Test the joined vote log."""

    def test_outcomes_are_oldest_first_and_filterable(self, arena: SeededArena, record_vote: RecordVote) -> None:
        # Arrange
        m0, m1, m2 = arena.model("model-0"), arena.model("model-1"), arena.model("model-2")
        prompt = arena.prompts[0]
        _ = record_vote(prompt.id, m0.id, m1.id, VoteChoice.A)
        _ = record_vote(prompt.id, m1.id, m2.id, VoteChoice.TIE)
        _ = record_vote(prompt.id, m0.id, m2.id, VoteChoice.BOTH_BAD)

        # Act
        everything = arena.store.load_vote_outcomes()
        decisive = arena.store.load_vote_outcomes(choices=[VoteChoice.A, VoteChoice.B])
        for_m2 = arena.store.load_vote_outcomes(model_id=m2.id)

        # Assert
        assert [o.choice for o in everything] == [VoteChoice.A, VoteChoice.TIE, VoteChoice.BOTH_BAD]
        assert [o.created_at for o in everything] == sorted(o.created_at for o in everything)
        assert len(decisive) == 1
        assert [o.choice for o in for_m2] == [VoteChoice.TIE, VoteChoice.BOTH_BAD]
        assert arena.store.count_votes() == 3
        assert arena.store.count_matchups() == 3
