"""
Tests for the HTTP API.
"""

import random

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from typing_extensions import override

from build_arena.api import create_app
from build_arena.config import ArenaConfig, ArenaSettings
from build_arena.models import Matchup
from build_arena.storage import SQLArenaStore
from tests.conftest import SeededArena, seed_arena


@pytest.fixture
def config() -> ArenaConfig:
    return ArenaConfig(database_url="sqlite://")


@pytest.fixture
def client(arena: SeededArena, config: ArenaConfig) -> TestClient:
    return TestClient(create_app(config, store=arena.store, rng=random.Random(7)))


@pytest.fixture
def empty_client(store: SQLArenaStore, config: ArenaConfig) -> TestClient:
    return TestClient(create_app(config, store=store, rng=random.Random(7)))


class TestMatchupEndpoint:
    """Test GET /api/arena/matchup."""

    def test_returns_matchup_and_sets_session_cookie(self, client: TestClient, arena: SeededArena) -> None:
        # Act
        response = client.get("/api/arena/matchup")

        # Assert
        assert response.status_code == 200
        assert response.headers["cache-control"] == "no-store"
        set_cookie = response.headers["set-cookie"]
        assert "mb_session=" in set_cookie
        assert "HttpOnly" in set_cookie
        assert "Max-Age=31536000" in set_cookie
        assert "samesite=lax" in set_cookie.lower()

        body = response.json()
        assert body["id"]
        assert body["samplingLane"] in {"coverage", "contender", "uncertainty", "exploration"}
        assert body["prompt"]["id"] in {p.id for p in arena.prompts}
        assert body["a"]["model"]["key"] != body["b"]["model"]["key"]
        assert body["a"]["delivery"] == "inline"
        assert body["a"]["build"] == {"blocks": [{"x": 0, "y": 0, "z": 0}]}
        assert body["a"]["blockCount"] == 1

    def test_existing_session_cookie_is_kept(self, client: TestClient) -> None:
        response = client.get("/api/arena/matchup", headers={"Cookie": "mb_session=returning-visitor"})

        assert response.status_code == 200
        assert "set-cookie" not in response.headers

    def test_prompt_id_constrains_matchup(self, client: TestClient, arena: SeededArena) -> None:
        prompt = arena.prompts[1]

        for _ in range(5):
            response = client.get("/api/arena/matchup", params={"promptId": prompt.id})
            assert response.json()["prompt"]["id"] == prompt.id

    def test_large_builds_are_not_inlined(self, empty_client: TestClient, store: SQLArenaStore) -> None:
        # Arrange
        settings = ArenaSettings()
        prompt = store.add_prompt("a cathedral")
        for key in ("big-a", "big-b"):
            model = store.add_model(key)
            _ = store.add_build(prompt.id, model.id, settings, storage_pointer=f"s3://builds/{key}", byte_size=60 * 1024 * 1024)

        # Act
        body = empty_client.get("/api/arena/matchup").json()

        # Assert
        assert body["a"]["delivery"] == "stream-artifact"
        assert body["a"]["build"] is None

    def test_no_eligible_prompts_is_a_conflict(self, empty_client: TestClient) -> None:
        response = empty_client.get("/api/arena/matchup")

        assert response.status_code == 409
        assert "error" in response.json()
        assert response.headers["cache-control"] == "no-store"


class TestVoteEndpoint:
    """Test POST /api/arena/vote."""

    def test_records_vote(self, client: TestClient, arena: SeededArena) -> None:
        # Arrange
        matchup = client.get("/api/arena/matchup").json()

        # Act
        response = client.post("/api/arena/vote", json={"matchupId": matchup["id"], "choice": "A"})

        # Assert
        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert arena.store.count_votes() == 1
        winner = arena.store.get_model_by_key(matchup["a"]["model"]["key"])
        assert winner is not None and winner.win_count == 1

    @pytest.mark.parametrize(
        "payload",
        [
            {"matchupId": "x", "choice": "MAYBE"},
            {"matchupId": "", "choice": "A"},
            {"choice": "A"},
            {},
        ],
    )
    def test_invalid_payload_is_rejected(self, client: TestClient, payload: dict) -> None:
        response = client.post("/api/arena/vote", json=payload)

        assert response.status_code == 400
        assert "error" in response.json()

    def test_unknown_matchup_is_not_found(self, client: TestClient) -> None:
        response = client.post("/api/arena/vote", json={"matchupId": "missing", "choice": "TIE"})

        assert response.status_code == 404
        assert response.json() == {"error": "Matchup not found"}


class TestReadEndpoints:
    """Test prompts, leaderboard and model detail."""

    def test_prompts_lists_eligible_prompts(self, client: TestClient, arena: SeededArena) -> None:
        response = client.get("/api/arena/prompts")

        assert response.status_code == 200
        assert {p["id"] for p in response.json()["prompts"]} == {p.id for p in arena.prompts}

    def test_leaderboard(self, client: TestClient) -> None:
        response = client.get("/api/leaderboard")

        assert response.status_code == 200
        models = response.json()["models"]
        assert len(models) == 4
        assert [m["rank"] for m in models] == [1, 2, 3, 4]

    def test_model_detail(self, client: TestClient) -> None:
        response = client.get("/api/leaderboard/model-2")

        assert response.status_code == 200
        assert response.json()["model"]["key"] == "model-2"

    def test_unknown_model_detail_is_not_found(self, client: TestClient) -> None:
        response = client.get("/api/leaderboard/nobody")

        assert response.status_code == 404

    def test_health(self, empty_client: TestClient) -> None:
        assert empty_client.get("/health").json() == {"status": "ok"}


class TestSeparateStores:
    """Apps built on separate stores do not share state."""

    def test_seeded_store_is_isolated(self, config: ArenaConfig) -> None:
        store = SQLArenaStore("sqlite://")
        _ = seed_arena(store, ArenaSettings(), model_count=2, prompt_count=1)
        client = TestClient(create_app(config, store=store))

        assert len(client.get("/api/leaderboard").json()["models"]) == 2


class UnreachableStore(SQLArenaStore):
    """Store whose reads fail like a dropped database connection."""

    @override
    def eligible_build_pairs(self, settings: ArenaSettings) -> list[tuple[str, str]]:
        raise OperationalError("SELECT build", {}, Exception("database is unavailable"))

    @override
    def get_matchup(self, matchup_id: str) -> Matchup | None:
        raise OperationalError("SELECT matchup", {}, Exception("database is unavailable"))


class TestDatabaseErrors:
    """Database failures still answer with an error body."""

    @pytest.fixture
    def broken_client(self, config: ArenaConfig) -> TestClient:
        return TestClient(create_app(config, store=UnreachableStore("sqlite://")))

    def test_matchup_read_failure_is_a_json_error(self, broken_client: TestClient) -> None:
        response = broken_client.get("/api/arena/matchup")

        assert response.status_code == 500
        assert response.json() == {"error": "Database error"}
        assert response.headers["cache-control"] == "no-store"

    def test_vote_lookup_failure_is_a_conflict(self, broken_client: TestClient) -> None:
        response = broken_client.post("/api/arena/vote", json={"matchupId": "m-1", "choice": "A"})

        assert response.status_code == 409
        assert response.json() == {"error": "Vote could not be recorded"}
