"""Request/response models for the arena API."""

from typing import Any, Literal

from pydantic import BaseModel, Field


class VoteRequest(BaseModel):
    matchupId: str = Field(min_length=1)
    choice: Literal["A", "B", "TIE", "BOTH_BAD"]


class VoteResponse(BaseModel):
    ok: bool = True


class PromptView(BaseModel):
    id: str
    text: str


class PromptListResponse(BaseModel):
    prompts: list[PromptView]


class ModelView(BaseModel):
    key: str
    provider: str
    displayName: str
    eloRating: float


class MatchupSideView(BaseModel):
    model: ModelView
    build: Any = None
    buildId: str
    blockCount: int
    checksum: str | None = None
    delivery: Literal["inline", "snapshot", "stream-live", "stream-artifact"]


class MatchupResponse(BaseModel):
    id: str
    samplingLane: str | None = None
    prompt: PromptView
    a: MatchupSideView
    b: MatchupSideView


class ErrorResponse(BaseModel):
    error: str
