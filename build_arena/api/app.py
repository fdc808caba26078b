"""FastAPI app for the build arena."""

import random
from typing import Any

from fastapi import FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from ..config import ArenaConfig
from ..exceptions import ArenaError
from ..logging_config import get_logger
from ..matchups import DeliveryClass, classify_delivery, estimate_build_bytes
from ..models import CreatedMatchup, MatchupSide
from ..services import ArenaServices
from ..storage import SQLArenaStore
from ..votes import new_session_id
from .schemas import (
    ErrorResponse,
    MatchupResponse,
    MatchupSideView,
    ModelView,
    PromptListResponse,
    PromptView,
    VoteRequest,
    VoteResponse,
)

logger = get_logger("api")

NO_STORE = {"Cache-Control": "no-store"}


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(ErrorResponse(error=message).model_dump(), status_code=status_code, headers=NO_STORE)


def _side_view(side: MatchupSide, config: ArenaConfig) -> MatchupSideView:
    delivery = classify_delivery(estimate_build_bytes(side.build.byte_size), config)
    return MatchupSideView(
        model=ModelView(
            key=side.model.key,
            provider=side.model.provider,
            displayName=side.model.display_name,
            eloRating=side.model.elo_rating,
        ),
        build=side.build.payload if delivery is DeliveryClass.INLINE else None,
        buildId=side.build.id,
        blockCount=side.build.block_count,
        checksum=side.build.checksum,
        delivery=delivery.value,
    )


def matchup_response(created: CreatedMatchup, config: ArenaConfig) -> MatchupResponse:
    lane = created.matchup.sampling_lane
    return MatchupResponse(
        id=created.matchup.id,
        samplingLane=lane.value if lane else None,
        prompt=PromptView(id=created.prompt.id, text=created.prompt.text),
        a=_side_view(created.a, config),
        b=_side_view(created.b, config),
    )


def create_app(
    config: ArenaConfig | None = None,
    store: SQLArenaStore | None = None,
    rng: random.Random | None = None,
) -> FastAPI:
    """
    Build the arena app.

    Args:
        config: Arena configuration (defaults to ArenaConfig.from_env())
        store: Existing store, mainly for tests
        rng: Random source for sampling, for deterministic tests
    """
    config = config or ArenaConfig.from_env()
    services = ArenaServices.build(config, store=store, rng=rng)

    app = FastAPI(title="Build Arena API")
    app.state.services = services

    def session_id(request: Request, response: Response) -> str:
        """Read the session cookie, setting a fresh one when absent."""
        existing = request.cookies.get(config.session_cookie)
        if existing:
            return existing
        created = new_session_id()
        response.set_cookie(
            config.session_cookie,
            created,
            max_age=config.session_max_age,
            path="/",
            httponly=True,
            samesite="lax",
        )
        return created

    @app.exception_handler(ArenaError)
    async def arena_error_handler(request: Request, exc: ArenaError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
        return error_response(exc.message, exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return error_response("Invalid request body", 400)

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.error(f"{request.method} {request.url.path} database error: {exc}")
        return error_response("Database error", 500)

    @app.get("/api/arena/matchup", response_model=MatchupResponse)
    def get_matchup(
        request: Request,
        response: Response,
        promptId: str | None = Query(default=None),
    ) -> MatchupResponse:
        created = services.matchmaker.next_matchup(promptId or None)
        response.headers.update(NO_STORE)
        _ = session_id(request, response)
        return matchup_response(created, config)

    @app.post("/api/arena/vote", response_model=VoteResponse)
    def post_vote(body: VoteRequest, request: Request, response: Response) -> VoteResponse:
        response.headers.update(NO_STORE)
        services.votes.record_vote(body.matchupId, body.choice, session_id(request, response))
        return VoteResponse(ok=True)

    @app.get("/api/arena/prompts", response_model=PromptListResponse)
    def get_prompts(response: Response) -> PromptListResponse:
        response.headers.update(NO_STORE)
        prompts = services.eligibility.list_prompts()
        return PromptListResponse(prompts=[PromptView(id=p.id, text=p.text) for p in prompts])

    @app.get("/api/leaderboard")
    def get_leaderboard(response: Response) -> dict[str, Any]:
        response.headers.update(NO_STORE)
        return {"models": services.leaderboard.leaderboard()}

    @app.get("/api/leaderboard/{model_key}")
    def get_model_detail(model_key: str, response: Response) -> dict[str, Any]:
        response.headers.update(NO_STORE)
        return services.leaderboard.model_detail(model_key)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
