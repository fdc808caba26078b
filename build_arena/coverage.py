"""
Coverage aggregation.

Counts decisive votes (A or B) by model x prompt, by model pair and by
model pair x prompt, restricted to what is currently eligible. Recomputed
from scratch on every matchmaking request.
"""

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field

from .eligibility import Eligibility
from .interfaces import ArenaStore
from .logging_config import get_logger
from .models import ModelPromptKey, PairKey, PairPromptKey, VoteChoice, VoteOutcome

# Module-level logger
logger = get_logger("coverage")

# Decisive votes a model needs on a prompt before the prompt counts as covered
PROMPT_COVERAGE_FLOOR = 2

DECISIVE_CHOICES = (VoteChoice.A, VoteChoice.B)


@dataclass
class CoverageSnapshot:
    """Decisive-vote aggregates for one matchmaking request."""

    model_prompt_votes: Counter[ModelPromptKey] = field(default_factory=Counter)
    pair_votes: Counter[PairKey] = field(default_factory=Counter)
    pair_prompt_votes: Counter[PairPromptKey] = field(default_factory=Counter)
    pair_prompt_count: Counter[PairKey] = field(default_factory=Counter)
    prompt_votes: Counter[str] = field(default_factory=Counter)
    prompt_coverage: dict[str, float] = field(default_factory=dict)

    def model_prompt(self, model_id: str, prompt_id: str) -> int:
        return self.model_prompt_votes[ModelPromptKey(model_id, prompt_id)]

    def pair(self, model_a: str, model_b: str) -> int:
        return self.pair_votes[PairKey.of(model_a, model_b)]

    def pair_prompts(self, model_a: str, model_b: str) -> int:
        """Distinct prompts the pair has decisive votes on."""
        return self.pair_prompt_count[PairKey.of(model_a, model_b)]

    def pair_prompt(self, model_a: str, model_b: str, prompt_id: str) -> int:
        return self.pair_prompt_votes[PairPromptKey(PairKey.of(model_a, model_b), prompt_id)]

    def coverage(self, model_id: str) -> float:
        return self.prompt_coverage.get(model_id, 0.0)

    def prompt_total(self, prompt_id: str) -> int:
        return self.prompt_votes[prompt_id]


class CoverageAggregator:
    """Builds a CoverageSnapshot from the vote log."""

    def __init__(self, store: ArenaStore):
        self.store = store

    def compute(self, eligibility: Eligibility) -> CoverageSnapshot:
        outcomes = self.store.load_vote_outcomes(choices=DECISIVE_CHOICES)
        return aggregate(outcomes, eligibility)


def aggregate(outcomes: Iterable[VoteOutcome], eligibility: Eligibility) -> CoverageSnapshot:
    """
    Aggregate decisive votes over the eligible prompts and models.

    A decisive vote counts toward the preferred side's model x prompt tally
    and toward the pair tallies; TIE and BOTH_BAD are ignored.
    """
    snapshot = CoverageSnapshot()
    skipped = 0

    for outcome in outcomes:
        if not outcome.choice.is_decisive:
            continue
        eligible_models = eligibility.models_for_prompt(outcome.prompt_id)
        if outcome.model_a_id not in eligible_models or outcome.model_b_id not in eligible_models:
            skipped += 1
            continue

        pair = PairKey.of(outcome.model_a_id, outcome.model_b_id)
        winner = outcome.model_a_id if outcome.choice is VoteChoice.A else outcome.model_b_id
        snapshot.model_prompt_votes[ModelPromptKey(winner, outcome.prompt_id)] += 1
        snapshot.pair_votes[pair] += 1
        snapshot.pair_prompt_votes[PairPromptKey(pair, outcome.prompt_id)] += 1
        snapshot.prompt_votes[outcome.prompt_id] += 1

    for key in snapshot.pair_prompt_votes:
        snapshot.pair_prompt_count[key.pair] += 1

    total_prompts = len(eligibility.prompt_models)
    for model_id in eligibility.model_ids:
        covered = sum(
            1
            for prompt_id in eligibility.prompts_for_model(model_id)
            if snapshot.model_prompt(model_id, prompt_id) >= PROMPT_COVERAGE_FLOOR
        )
        snapshot.prompt_coverage[model_id] = covered / total_prompts if total_prompts else 0.0

    if skipped:
        logger.debug(f"Skipped {skipped} decisive votes outside current eligibility")
    return snapshot
