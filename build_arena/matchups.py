"""
Matchup creation.

MatchupFactory persists a lane's choice with its builds and bumps exposure
counters; ArenaMatchmaker runs the whole per-request pipeline from
eligibility to a persisted matchup.
"""

import random
import time
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

if TYPE_CHECKING:
    from loguru import Logger

from .config import ArenaConfig, ArenaSettings
from .coverage import CoverageAggregator
from .eligibility import EligibilityIndex
from .exceptions import MissingBuild, NotEligible, NotFound, SamplingExhausted, TransactionConflict
from .interfaces import ArenaStore, BuildStore
from .lane_selectors import LaneSelector, SelectionContext
from .logging_config import get_logger
from .models import Build, CreatedMatchup, LaneChoice, Matchup, MatchupSide
from .storage.sql_store import new_id


class DeliveryClass(str, Enum):
    """How the client should fetch a build's payload."""

    INLINE = "inline"
    SNAPSHOT = "snapshot"
    STREAM_LIVE = "stream-live"
    STREAM_ARTIFACT = "stream-artifact"


def estimate_build_bytes(byte_size: int | None) -> int | None:
    """A build payload's size in bytes, or None when unknown."""
    if byte_size is not None and byte_size > 0:
        return int(byte_size)
    return None


def classify_delivery(estimated_bytes: int | None, config: ArenaConfig) -> DeliveryClass:
    if estimated_bytes is None:
        return DeliveryClass.STREAM_LIVE
    if estimated_bytes <= config.inline_max_bytes:
        return DeliveryClass.INLINE
    if estimated_bytes <= config.snapshot_max_bytes:
        return DeliveryClass.SNAPSHOT
    if estimated_bytes < config.artifact_min_bytes:
        return DeliveryClass.STREAM_LIVE
    return DeliveryClass.STREAM_ARTIFACT


class MatchupFactory:
    """Turns a lane choice into a persisted matchup."""

    def __init__(
        self,
        store: ArenaStore,
        builds: BuildStore,
        settings: ArenaSettings,
        rng: random.Random | None = None,
    ):
        """
        Initialize matchup factory.

        Args:
            store: Arena store (matchup insert and shown counters)
            builds: Build lookup collaborator
            settings: Fixed build settings
            rng: Random source for the display-side swap
        """
        self.store = store
        self.builds = builds
        self.settings = settings
        self.rng = rng or random.Random()
        self.logger: Logger = get_logger("matchup_factory")

    def _fetch_build(self, prompt_id: str, model_id: str) -> Build:
        build = self.builds.get_build(prompt_id, model_id, self.settings)
        if build is None:
            self.logger.error(f"Missing seeded build for prompt {prompt_id}, model {model_id}, {self.settings}")
            raise MissingBuild("Missing seeded build")
        return build

    def create(self, choice: LaneChoice) -> CreatedMatchup:
        """
        Persist the matchup for a lane choice.

        Display sides are swapped 50/50, independent of which model was the
        anchor. Both models' shown counts are incremented in the same
        transaction as the matchup insert.

        Raises:
            MissingBuild: If either model has no build for the prompt
            NotFound: If the prompt or a model vanished since selection
            TransactionConflict: If the matchup insert was rolled back
        """
        prompt = self.store.get_prompt(choice.prompt_id)
        if prompt is None:
            raise NotFound(f"Prompt not found: {choice.prompt_id}")
        models = self.store.get_models([choice.model_a_id, choice.model_b_id])
        if choice.model_a_id not in models or choice.model_b_id not in models:
            raise NotFound("Selected model not found")

        build_anchor = self._fetch_build(choice.prompt_id, choice.model_a_id)
        build_opponent = self._fetch_build(choice.prompt_id, choice.model_b_id)

        side_a = MatchupSide(model=models[choice.model_a_id], build=build_anchor)
        side_b = MatchupSide(model=models[choice.model_b_id], build=build_opponent)
        if self.rng.random() < 0.5:
            side_a, side_b = side_b, side_a

        matchup = Matchup(
            id=new_id(),
            prompt_id=prompt.id,
            model_a_id=side_a.model.id,
            model_b_id=side_b.model.id,
            build_a_id=side_a.build.id,
            build_b_id=side_b.build.id,
            sampling_lane=choice.lane,
            sampling_reason=choice.reason,
            created_at=time.time(),
        )

        try:
            with self.store.unit_of_work() as uow:
                uow.insert_matchup(matchup)
                uow.increment_shown_count([matchup.model_a_id, matchup.model_b_id])
        except SQLAlchemyError as e:
            self.logger.error(f"Matchup transaction rolled back: {e}")
            raise TransactionConflict("Matchup could not be created") from e

        self.logger.info(
            f"Matchup {matchup.id}: {side_a.model.key} vs {side_b.model.key} on {prompt.id} "
            f"[{choice.lane.value}] {choice.reason}"
        )
        return CreatedMatchup(matchup=matchup, prompt=prompt, a=side_a, b=side_b)


class ArenaMatchmaker:
    """
    Per-request matchmaking pipeline.

    Eligibility and coverage are recomputed on every call; no state is kept
    between requests besides the injected random source.
    """

    def __init__(
        self,
        store: ArenaStore,
        selector: LaneSelector,
        factory: MatchupFactory,
        settings: ArenaSettings,
        rng: random.Random | None = None,
    ):
        self.store = store
        self.selector = selector
        self.factory = factory
        self.eligibility_index = EligibilityIndex(store, settings)
        self.coverage = CoverageAggregator(store)
        self.rng = rng or random.Random()
        self.logger: Logger = get_logger("matchmaker")

    def next_matchup(self, requested_prompt_id: str | None = None) -> CreatedMatchup:
        """
        Select and persist the next matchup.

        Args:
            requested_prompt_id: Constrain every lane to this prompt if eligible

        Raises:
            NotEligible: No prompt has two eligible models
            SamplingExhausted: Every lane failed
            MissingBuild: A selected build is absent
        """
        eligibility = self.eligibility_index.build()
        if eligibility.is_empty:
            raise NotEligible("No eligible prompts for the arena settings")

        models = self.store.get_models(eligibility.model_ids)
        if len(models) < 2:
            raise NotEligible("Not enough eligible models")

        context = SelectionContext(
            eligibility=eligibility,
            coverage=self.coverage.compute(eligibility),
            models=models,
            requested_prompt_id=requested_prompt_id,
            rng=self.rng,
        )
        if requested_prompt_id and not context.is_constrained:
            self.logger.info(f"Requested prompt {requested_prompt_id} is not eligible, sampling unconstrained")

        choice = self.selector.select(context)
        if choice is None:
            self.logger.error("Sampling exhausted every lane")
            raise SamplingExhausted("Failed to choose a matchup")

        return self.factory.create(choice)
