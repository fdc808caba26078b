"""
Relational schema for arena state.

Models carry their rating state and counters; prompts and builds are
seeded externally; matchups and votes are append-only.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
)

metadata = MetaData()

model_table = Table(
    "model",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("key", String(128), nullable=False, unique=True),
    Column("provider", String(64), nullable=False),
    Column("display_name", String(256), nullable=False),
    Column("elo_rating", Float, nullable=False, default=1500.0),
    Column("conservative_rating", Float, nullable=False, default=800.0),
    Column("rating_deviation", Float, nullable=False, default=350.0),
    Column("rating_volatility", Float, nullable=False, default=3.5),
    Column("shown_count", Integer, nullable=False, default=0),
    Column("win_count", Integer, nullable=False, default=0),
    Column("loss_count", Integer, nullable=False, default=0),
    Column("draw_count", Integer, nullable=False, default=0),
    Column("both_bad_count", Integer, nullable=False, default=0),
    Column("enabled", Boolean, nullable=False, default=True),
    Column("is_baseline", Boolean, nullable=False, default=False),
    Index("ix_model_conservative_rating", "conservative_rating"),
)

prompt_table = Table(
    "prompt",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("text", Text, nullable=False),
    Column("active", Boolean, nullable=False, default=True),
    Column("created_at", Float, nullable=False),
)

build_table = Table(
    "build",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("prompt_id", String(64), ForeignKey("prompt.id"), nullable=False),
    Column("model_id", String(64), ForeignKey("model.id"), nullable=False),
    Column("grid_size", Integer, nullable=False),
    Column("palette", String(32), nullable=False),
    Column("mode", String(32), nullable=False),
    Column("block_count", Integer, nullable=False, default=0),
    Column("payload", JSON, nullable=True),
    Column("storage_pointer", String(512), nullable=True),
    Column("byte_size", Integer, nullable=True),
    Column("checksum", String(128), nullable=True),
    UniqueConstraint(
        "prompt_id",
        "model_id",
        "grid_size",
        "palette",
        "mode",
        name="unique_build_per_settings",
    ),
    Index("ix_build_settings", "grid_size", "palette", "mode"),
)

matchup_table = Table(
    "matchup",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("prompt_id", String(64), ForeignKey("prompt.id"), nullable=False),
    Column("model_a_id", String(64), ForeignKey("model.id"), nullable=False),
    Column("model_b_id", String(64), ForeignKey("model.id"), nullable=False),
    Column("build_a_id", String(64), ForeignKey("build.id"), nullable=False),
    Column("build_b_id", String(64), ForeignKey("build.id"), nullable=False),
    Column("sampling_lane", String(32), nullable=True),
    Column("sampling_reason", String(512), nullable=True),
    Column("created_at", Float, nullable=False),
    CheckConstraint("model_a_id <> model_b_id", name="matchup_distinct_models"),
)

vote_table = Table(
    "vote",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("matchup_id", String(64), ForeignKey("matchup.id"), nullable=False),
    Column("session_id", String(128), nullable=False),
    Column("choice", String(16), nullable=False),
    Column("created_at", Float, nullable=False),
    CheckConstraint("choice IN ('A', 'B', 'TIE', 'BOTH_BAD')", name="vote_choice_valid"),
    Index("ix_vote_matchup", "matchup_id"),
    Index("ix_vote_created_at", "created_at"),
)
