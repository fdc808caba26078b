"""
Shared fixtures for arena tests.

Every test gets its own in-memory SQLite store.
"""

import random
from collections.abc import Callable
from dataclasses import dataclass

import pytest

from build_arena.config import ArenaSettings
from build_arena.matchups import MatchupFactory
from build_arena.models import CreatedMatchup, Lane, LaneChoice, Matchup, Model, Prompt, Vote, VoteChoice
from build_arena.storage import SQLArenaStore
from build_arena.storage.sql_store import new_id


@dataclass
class SeededArena:
    store: SQLArenaStore
    settings: ArenaSettings
    models: list[Model]
    prompts: list[Prompt]

    def model(self, key: str) -> Model:
        return next(m for m in self.models if m.key == key)


RecordVote = Callable[..., Matchup]


@pytest.fixture
def settings() -> ArenaSettings:
    return ArenaSettings()


@pytest.fixture
def store() -> SQLArenaStore:
    return SQLArenaStore("sqlite://")


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


def seed_arena(
    store: SQLArenaStore,
    settings: ArenaSettings,
    model_count: int = 4,
    prompt_count: int = 3,
) -> SeededArena:
    """Seed model_count models and prompt_count prompts, with a build for every pair."""
    models = [store.add_model(f"model-{i}", display_name=f"Model {i}") for i in range(model_count)]
    prompts = [store.add_prompt(f"prompt {i}") for i in range(prompt_count)]
    for prompt in prompts:
        for model in models:
            _ = store.add_build(prompt.id, model.id, settings, payload={"blocks": [{"x": 0, "y": 0, "z": 0}]})
    return SeededArena(store=store, settings=settings, models=models, prompts=prompts)


@pytest.fixture
def arena(store: SQLArenaStore, settings: ArenaSettings) -> SeededArena:
    """3 prompts x 4 enabled models, every model has a build for every prompt."""
    return seed_arena(store, settings)


@pytest.fixture
def record_vote(store: SQLArenaStore, settings: ArenaSettings) -> RecordVote:
    """
    Insert a matchup and a vote directly, without touching ratings.

    Timestamps increase with every call so vote order is deterministic.
    """
    clock = {"now": 1_000.0}

    def _record(prompt_id: str, model_a_id: str, model_b_id: str, choice: VoteChoice) -> Matchup:
        clock["now"] += 1.0
        build_a = store.get_build(prompt_id, model_a_id, settings)
        build_b = store.get_build(prompt_id, model_b_id, settings)
        assert build_a is not None and build_b is not None
        matchup = Matchup(
            id=new_id(),
            prompt_id=prompt_id,
            model_a_id=model_a_id,
            model_b_id=model_b_id,
            build_a_id=build_a.id,
            build_b_id=build_b.id,
            created_at=clock["now"],
        )
        with store.unit_of_work() as uow:
            uow.insert_matchup(matchup)
            uow.insert_vote(
                Vote(
                    id=new_id(),
                    matchup_id=matchup.id,
                    session_id="test-session",
                    choice=choice,
                    created_at=clock["now"],
                )
            )
        return matchup

    return _record


@pytest.fixture
def arena_factory(store: SQLArenaStore, settings: ArenaSettings) -> Callable[..., SeededArena]:
    """Seed a custom-sized arena into the test store."""

    def _factory(model_count: int = 4, prompt_count: int = 3) -> SeededArena:
        return seed_arena(store, settings, model_count, prompt_count)

    return _factory


@pytest.fixture
def make_matchup(arena: SeededArena, rng: random.Random) -> Callable[..., CreatedMatchup]:
    """Persist a matchup between two seeded models through MatchupFactory."""
    factory = MatchupFactory(arena.store, arena.store, arena.settings, rng)

    def _make(key_a: str = "model-0", key_b: str = "model-1", prompt_index: int = 0) -> CreatedMatchup:
        choice = LaneChoice(
            lane=Lane.COVERAGE,
            reason=f"anchor:{key_a}",
            prompt_id=arena.prompts[prompt_index].id,
            model_a_id=arena.model(key_a).id,
            model_b_id=arena.model(key_b).id,
        )
        return factory.create(choice)

    return _make
