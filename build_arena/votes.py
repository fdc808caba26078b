"""
Vote recording.

Validates a vote, then inserts it and applies the rating update in one
unit of work. A failure anywhere rolls the whole vote back.
"""

import time
import uuid
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

if TYPE_CHECKING:
    from loguru import Logger

from .cache import StatsCache
from .exceptions import NotFound, TransactionConflict, ValidationError
from .interfaces import ArenaStore
from .logging_config import get_logger
from .models import Vote, VoteChoice
from .rankers.rating_engine import RatingEngine, RatingUpdate
from .storage.sql_store import new_id


def new_session_id() -> str:
    return str(uuid.uuid4())


def parse_choice(raw: object) -> VoteChoice:
    """Parse a vote choice, raising ValidationError for anything but the four values."""
    if isinstance(raw, VoteChoice):
        return raw
    if not isinstance(raw, str):
        raise ValidationError("Invalid vote choice")
    try:
        return VoteChoice(raw)
    except ValueError as e:
        raise ValidationError("Invalid vote choice") from e


class VoteService:
    """Records votes and keeps ratings in step with them."""

    def __init__(
        self,
        store: ArenaStore,
        rating_engine: RatingEngine,
        cache: StatsCache | None = None,
    ):
        """
        Initialize vote service.

        Args:
            store: Arena store
            rating_engine: Applies rating updates inside the vote transaction
            cache: Stats cache invalidated after every committed vote
        """
        self.store = store
        self.rating_engine = rating_engine
        self.cache = cache
        self.logger: Logger = get_logger("vote_service")

    def record_vote(self, matchup_id: str, choice: VoteChoice | str, session_id: str) -> RatingUpdate | None:
        """
        Record one vote.

        Returns:
            The rating change, or None for a BOTH_BAD vote

        Raises:
            ValidationError: Empty matchup id or session, or unknown choice
            NotFound: Unknown matchup
            TransactionConflict: The vote transaction failed and was rolled back
        """
        if not matchup_id:
            raise ValidationError("Invalid vote payload")
        if not session_id:
            raise ValidationError("Missing session")
        vote_choice = parse_choice(choice)

        try:
            matchup = self.store.get_matchup(matchup_id)
        except SQLAlchemyError as e:
            self.logger.error(f"Loading matchup {matchup_id} failed: {e}")
            raise TransactionConflict("Vote could not be recorded") from e
        if matchup is None:
            raise NotFound("Matchup not found")

        vote = Vote(
            id=new_id(),
            matchup_id=matchup.id,
            session_id=session_id,
            choice=vote_choice,
            created_at=time.time(),
        )

        try:
            with self.store.unit_of_work() as uow:
                # Insert first so the transaction holds the write lock before the model reads
                uow.insert_vote(vote)
                update = self.rating_engine.apply(uow, matchup.model_a_id, matchup.model_b_id, vote_choice)
        except (SQLAlchemyError, NotFound) as e:
            self.logger.error(f"Vote transaction for matchup {matchup.id} rolled back: {e}")
            raise TransactionConflict("Vote could not be recorded") from e

        if self.cache is not None:
            self.cache.invalidate()

        self.logger.info(f"Vote {vote.id}: matchup {matchup.id} -> {vote_choice.value}")
        return update
