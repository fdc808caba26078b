"""
SQL storage implementation.

Backs the arena with any SQLAlchemy engine (SQLite locally, Postgres in
production). Reads run on short-lived connections; writes go through a
unit of work that commits or rolls back as one transaction.
"""

import hashlib
import json
import threading
import time
import uuid
from collections.abc import Iterable, Iterator, Sequence
from contextlib import AbstractContextManager, contextmanager, nullcontext
from typing import Any

from sqlalchemy import Engine, create_engine, func, or_, select, update
from sqlalchemy.engine import Connection, RowMapping
from sqlalchemy.pool import StaticPool
from typing_extensions import override

from ..config import ArenaSettings
from ..interfaces import ArenaStore, BuildStore, OutcomeCounter, UnitOfWork
from ..logging_config import get_logger
from ..models import (
    Build,
    Lane,
    Matchup,
    Model,
    Prompt,
    RatingState,
    Vote,
    VoteChoice,
    VoteOutcome,
)
from ..rankers.trueskill_ranker import (
    INITIAL_RATING,
    INITIAL_RD,
    INITIAL_VOLATILITY,
    conservative_score,
)
from .schema import (
    build_table,
    matchup_table,
    metadata,
    model_table,
    prompt_table,
    vote_table,
)

# Module-level logger
logger = get_logger("sql_store")

OUTCOME_COUNTERS: frozenset[str] = frozenset(
    {"win_count", "loss_count", "draw_count", "both_bad_count"}
)


def new_id() -> str:
    return uuid.uuid4().hex


def payload_checksum(payload: Any) -> str:
    """SHA-256 of the canonical JSON encoding of a build payload."""
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


def make_engine(database_url: str) -> Engine:
    """
    Create an engine.

    In-memory SQLite lives on a single connection (StaticPool) that every
    thread shares; SQLArenaStore serializes access to it.
    """
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(database_url, pool_pre_ping=True)


def _row_to_model(row: RowMapping) -> Model:
    return Model(
        id=row["id"],
        key=row["key"],
        provider=row["provider"],
        display_name=row["display_name"],
        elo_rating=float(row["elo_rating"]),
        conservative_rating=float(row["conservative_rating"]),
        rating_deviation=float(row["rating_deviation"]),
        rating_volatility=float(row["rating_volatility"]),
        shown_count=int(row["shown_count"]),
        win_count=int(row["win_count"]),
        loss_count=int(row["loss_count"]),
        draw_count=int(row["draw_count"]),
        both_bad_count=int(row["both_bad_count"]),
        enabled=bool(row["enabled"]),
        is_baseline=bool(row["is_baseline"]),
    )


def _row_to_prompt(row: RowMapping) -> Prompt:
    return Prompt(
        id=row["id"],
        text=row["text"],
        active=bool(row["active"]),
        created_at=float(row["created_at"]),
    )


def _row_to_build(row: RowMapping) -> Build:
    return Build(
        id=row["id"],
        prompt_id=row["prompt_id"],
        model_id=row["model_id"],
        grid_size=int(row["grid_size"]),
        palette=row["palette"],
        mode=row["mode"],
        block_count=int(row["block_count"]),
        payload=row["payload"],
        storage_pointer=row["storage_pointer"],
        byte_size=row["byte_size"],
        checksum=row["checksum"],
    )


def _row_to_matchup(row: RowMapping) -> Matchup:
    lane = row["sampling_lane"]
    return Matchup(
        id=row["id"],
        prompt_id=row["prompt_id"],
        model_a_id=row["model_a_id"],
        model_b_id=row["model_b_id"],
        build_a_id=row["build_a_id"],
        build_b_id=row["build_b_id"],
        sampling_lane=Lane(lane) if lane else None,
        sampling_reason=row["sampling_reason"],
        created_at=float(row["created_at"]),
    )


class SQLUnitOfWork(UnitOfWork):
    """Writes bound to one open transaction."""

    def __init__(self, conn: Connection):
        self.conn = conn

    @override
    def insert_matchup(self, matchup: Matchup) -> None:
        _ = self.conn.execute(
            matchup_table.insert().values(
                id=matchup.id,
                prompt_id=matchup.prompt_id,
                model_a_id=matchup.model_a_id,
                model_b_id=matchup.model_b_id,
                build_a_id=matchup.build_a_id,
                build_b_id=matchup.build_b_id,
                sampling_lane=matchup.sampling_lane.value if matchup.sampling_lane else None,
                sampling_reason=matchup.sampling_reason,
                created_at=matchup.created_at,
            )
        )

    @override
    def increment_shown_count(self, model_ids: Sequence[str]) -> None:
        for model_id in model_ids:
            _ = self.conn.execute(
                update(model_table)
                .where(model_table.c.id == model_id)
                .values(shown_count=model_table.c.shown_count + 1)
            )

    @override
    def insert_vote(self, vote: Vote) -> None:
        _ = self.conn.execute(
            vote_table.insert().values(
                id=vote.id,
                matchup_id=vote.matchup_id,
                session_id=vote.session_id,
                choice=vote.choice.value,
                created_at=vote.created_at,
            )
        )

    @override
    def load_models_for_update(self, model_ids: Sequence[str]) -> dict[str, Model]:
        rows = self.conn.execute(
            select(model_table).where(model_table.c.id.in_(list(model_ids))).with_for_update()
        ).mappings()
        return {row["id"]: _row_to_model(row) for row in rows}

    @override
    def save_rating(self, model_id: str, state: RatingState, conservative_rating: float) -> None:
        _ = self.conn.execute(
            update(model_table)
            .where(model_table.c.id == model_id)
            .values(
                elo_rating=state.rating,
                rating_deviation=state.rd,
                rating_volatility=state.volatility,
                conservative_rating=conservative_rating,
            )
        )

    @override
    def increment_outcome(self, model_id: str, counter: OutcomeCounter) -> None:
        if counter not in OUTCOME_COUNTERS:
            raise ValueError(f"Unknown outcome counter: {counter}")
        column = model_table.c[counter]
        _ = self.conn.execute(
            update(model_table).where(model_table.c.id == model_id).values({column: column + 1})
        )


class SQLArenaStore(ArenaStore, BuildStore):
    """
    SQLAlchemy-backed arena store.

    Also answers build lookups, since builds live in the same database.
    """

    engine: Engine

    def __init__(self, database_url: str | None = None, engine: Engine | None = None):
        """
        Initialize SQL storage.

        Args:
            database_url: SQLAlchemy URL, used when no engine is given
            engine: Existing engine to reuse
        """
        if engine is None:
            if not database_url:
                raise ValueError("database_url or engine is required")
            engine = make_engine(database_url)
        self.engine = engine
        # One shared connection cannot hold overlapping transactions
        self._lock = threading.RLock() if isinstance(engine.pool, StaticPool) else None
        metadata.create_all(self.engine)
        logger.info(f"SQL storage initialized: {self.engine.url.render_as_string(hide_password=True)}")

    def _serialized(self) -> AbstractContextManager[object]:
        return self._lock if self._lock is not None else nullcontext()

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        with self._serialized(), self.engine.connect() as conn:
            yield conn

    @contextmanager
    def _begin(self) -> Iterator[Connection]:
        """Open a transaction; commit on normal exit, roll back on exception."""
        with self._serialized(), self.engine.begin() as conn:
            yield conn

    @override
    def eligible_build_pairs(self, settings: ArenaSettings) -> list[tuple[str, str]]:
        query = (
            select(build_table.c.prompt_id, build_table.c.model_id)
            .distinct()
            .join(model_table, model_table.c.id == build_table.c.model_id)
            .join(prompt_table, prompt_table.c.id == build_table.c.prompt_id)
            .where(
                build_table.c.grid_size == settings.grid_size,
                build_table.c.palette == settings.palette,
                build_table.c.mode == settings.mode,
                model_table.c.enabled.is_(True),
                model_table.c.is_baseline.is_(False),
                prompt_table.c.active.is_(True),
            )
        )
        with self._connect() as conn:
            return [(row.prompt_id, row.model_id) for row in conn.execute(query)]

    @override
    def list_models(self, enabled_only: bool = True) -> list[Model]:
        query = select(model_table).order_by(model_table.c.display_name, model_table.c.id)
        if enabled_only:
            query = query.where(
                model_table.c.enabled.is_(True), model_table.c.is_baseline.is_(False)
            )
        with self._connect() as conn:
            return [_row_to_model(row) for row in conn.execute(query).mappings()]

    @override
    def get_models(self, model_ids: Iterable[str]) -> dict[str, Model]:
        ids = list(model_ids)
        if not ids:
            return {}
        with self._connect() as conn:
            rows = conn.execute(select(model_table).where(model_table.c.id.in_(ids))).mappings()
            return {row["id"]: _row_to_model(row) for row in rows}

    @override
    def get_model_by_key(self, key: str) -> Model | None:
        with self._connect() as conn:
            row = conn.execute(select(model_table).where(model_table.c.key == key)).mappings().first()
        return _row_to_model(row) if row else None

    @override
    def list_prompts(self, active_only: bool = True) -> list[Prompt]:
        query = select(prompt_table).order_by(prompt_table.c.created_at, prompt_table.c.id)
        if active_only:
            query = query.where(prompt_table.c.active.is_(True))
        with self._connect() as conn:
            return [_row_to_prompt(row) for row in conn.execute(query).mappings()]

    @override
    def get_prompt(self, prompt_id: str) -> Prompt | None:
        with self._connect() as conn:
            row = conn.execute(
                select(prompt_table).where(prompt_table.c.id == prompt_id)
            ).mappings().first()
        return _row_to_prompt(row) if row else None

    @override
    def get_matchup(self, matchup_id: str) -> Matchup | None:
        with self._connect() as conn:
            row = conn.execute(
                select(matchup_table).where(matchup_table.c.id == matchup_id)
            ).mappings().first()
        return _row_to_matchup(row) if row else None

    @override
    def load_vote_outcomes(
        self,
        choices: Iterable[VoteChoice] | None = None,
        model_id: str | None = None,
    ) -> list[VoteOutcome]:
        query = (
            select(
                matchup_table.c.prompt_id,
                matchup_table.c.model_a_id,
                matchup_table.c.model_b_id,
                vote_table.c.choice,
                vote_table.c.created_at,
            )
            .join(matchup_table, matchup_table.c.id == vote_table.c.matchup_id)
            .order_by(vote_table.c.created_at, vote_table.c.id)
        )
        if choices is not None:
            query = query.where(vote_table.c.choice.in_([c.value for c in choices]))
        if model_id is not None:
            query = query.where(
                or_(matchup_table.c.model_a_id == model_id, matchup_table.c.model_b_id == model_id)
            )
        with self._connect() as conn:
            return [
                VoteOutcome(
                    prompt_id=row.prompt_id,
                    model_a_id=row.model_a_id,
                    model_b_id=row.model_b_id,
                    choice=VoteChoice(row.choice),
                    created_at=float(row.created_at),
                )
                for row in conn.execute(query)
            ]

    @override
    def list_builds_for_model(self, model_id: str, settings: ArenaSettings) -> list[Build]:
        query = select(build_table).where(
            build_table.c.model_id == model_id,
            build_table.c.grid_size == settings.grid_size,
            build_table.c.palette == settings.palette,
            build_table.c.mode == settings.mode,
        )
        with self._connect() as conn:
            return [_row_to_build(row) for row in conn.execute(query).mappings()]

    @override
    def get_build(self, prompt_id: str, model_id: str, settings: ArenaSettings) -> Build | None:
        query = select(build_table).where(
            build_table.c.prompt_id == prompt_id,
            build_table.c.model_id == model_id,
            build_table.c.grid_size == settings.grid_size,
            build_table.c.palette == settings.palette,
            build_table.c.mode == settings.mode,
        )
        with self._connect() as conn:
            row = conn.execute(query).mappings().first()
        return _row_to_build(row) if row else None

    @override
    @contextmanager
    def unit_of_work(self) -> Iterator[SQLUnitOfWork]:
        with self._begin() as conn:
            yield SQLUnitOfWork(conn)

    def count_votes(self) -> int:
        with self._connect() as conn:
            return int(conn.execute(select(func.count()).select_from(vote_table)).scalar_one())

    def count_matchups(self) -> int:
        with self._connect() as conn:
            return int(conn.execute(select(func.count()).select_from(matchup_table)).scalar_one())

    # Seed helpers for tests, the demo and the simulation

    def add_model(
        self,
        key: str,
        provider: str = "test",
        display_name: str | None = None,
        enabled: bool = True,
        is_baseline: bool = False,
        rating: float = INITIAL_RATING,
        rd: float = INITIAL_RD,
    ) -> Model:
        """Insert a model with a fresh rating state."""
        model = Model(
            id=new_id(),
            key=key,
            provider=provider,
            display_name=display_name or key,
            elo_rating=rating,
            conservative_rating=conservative_score(rating, rd),
            rating_deviation=rd,
            rating_volatility=INITIAL_VOLATILITY,
            enabled=enabled,
            is_baseline=is_baseline,
        )
        with self._begin() as conn:
            _ = conn.execute(
                model_table.insert().values(
                    id=model.id,
                    key=model.key,
                    provider=model.provider,
                    display_name=model.display_name,
                    elo_rating=model.elo_rating,
                    conservative_rating=model.conservative_rating,
                    rating_deviation=model.rating_deviation,
                    rating_volatility=model.rating_volatility,
                    enabled=model.enabled,
                    is_baseline=model.is_baseline,
                )
            )
        logger.debug(f"Seeded model {model.key} ({model.id})")
        return model

    def add_prompt(self, text: str, active: bool = True) -> Prompt:
        prompt = Prompt(id=new_id(), text=text, active=active, created_at=time.time())
        with self._begin() as conn:
            _ = conn.execute(
                prompt_table.insert().values(
                    id=prompt.id, text=prompt.text, active=prompt.active, created_at=prompt.created_at
                )
            )
        return prompt

    def add_build(
        self,
        prompt_id: str,
        model_id: str,
        settings: ArenaSettings,
        payload: Any = None,
        block_count: int | None = None,
        storage_pointer: str | None = None,
        byte_size: int | None = None,
    ) -> Build:
        """Insert a build; inline payloads get a checksum and a byte size."""
        checksum = None
        if payload is not None:
            checksum = payload_checksum(payload)
            if byte_size is None:
                byte_size = len(json.dumps(payload).encode("utf-8"))
            if block_count is None and isinstance(payload, dict):
                block_count = len(payload.get("blocks", []))
        build = Build(
            id=new_id(),
            prompt_id=prompt_id,
            model_id=model_id,
            grid_size=settings.grid_size,
            palette=settings.palette,
            mode=settings.mode,
            block_count=block_count or 0,
            payload=payload,
            storage_pointer=storage_pointer,
            byte_size=byte_size,
            checksum=checksum,
        )
        with self._begin() as conn:
            _ = conn.execute(
                build_table.insert().values(
                    id=build.id,
                    prompt_id=build.prompt_id,
                    model_id=build.model_id,
                    grid_size=build.grid_size,
                    palette=build.palette,
                    mode=build.mode,
                    block_count=build.block_count,
                    payload=build.payload,
                    storage_pointer=build.storage_pointer,
                    byte_size=build.byte_size,
                    checksum=build.checksum,
                )
            )
        return build

    def set_model_enabled(self, model_id: str, enabled: bool) -> None:
        with self._begin() as conn:
            _ = conn.execute(
                update(model_table).where(model_table.c.id == model_id).values(enabled=enabled)
            )
