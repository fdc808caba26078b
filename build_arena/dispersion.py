"""
Dispersion analysis.

Per-model score consistency across prompts and recent-form trend, computed
from rated votes (A, B, TIE). Read-only; runs downstream of the vote log.
"""

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import numpy as np

from .coverage import PROMPT_COVERAGE_FLOOR
from .interfaces import ArenaStore, RecentForm, ScoreDispersion
from .logging_config import get_logger
from .models import VoteChoice, VoteOutcome

# Module-level logger
logger = get_logger("dispersion")

MIN_PROMPTS_FOR_SPREAD = 3
MAX_SPREAD = 0.5
RECENT_FORM_WINDOW = 30

RATED_CHOICES = tuple(choice for choice in VoteChoice if choice.is_rated)


@dataclass
class PromptSample:
    """One model's rated votes on one prompt."""

    prompt_id: str
    votes: int
    average_score: float
    both_bad: int = 0


def consistency_from_spread(spread: float) -> int:
    """100 for identical per-prompt scores, 0 at a spread of MAX_SPREAD or more."""
    return round((1 - min(spread, MAX_SPREAD) / MAX_SPREAD) * 100)


def summarize_dispersion(samples: Iterable[PromptSample], active_prompts: int) -> ScoreDispersion:
    """
    Summarize per-prompt average scores into mean, variance and spread.

    Variance is the population variance across prompts. Fewer than
    MIN_PROMPTS_FOR_SPREAD rated prompts leave variance, spread and
    consistency as None.
    """
    averages: list[float] = []
    sampled_votes = 0
    covered = 0
    for sample in samples:
        if sample.votes <= 0:
            continue
        averages.append(sample.average_score)
        sampled_votes += sample.votes
        if sample.votes >= PROMPT_COVERAGE_FLOOR:
            covered += 1

    prompt_coverage = min(1.0, covered / active_prompts) if active_prompts > 0 else 0.0
    result: ScoreDispersion = {
        "meanScore": None,
        "scoreVariance": None,
        "scoreSpread": None,
        "consistency": None,
        "coveredPrompts": covered,
        "activePrompts": active_prompts,
        "promptCoverage": prompt_coverage,
        "sampledPrompts": len(averages),
        "sampledVotes": sampled_votes,
    }
    if not averages:
        return result

    scores = np.array(averages, dtype=float)
    result["meanScore"] = float(np.mean(scores))
    if len(averages) < MIN_PROMPTS_FOR_SPREAD:
        return result

    variance = float(np.var(scores))
    spread = float(np.sqrt(variance))
    result["scoreVariance"] = variance
    result["scoreSpread"] = spread
    result["consistency"] = consistency_from_spread(spread)
    return result


def prompt_samples(outcomes: Iterable[VoteOutcome], model_id: str) -> list[PromptSample]:
    """Group one model's votes by prompt; BOTH_BAD is counted but not scored."""
    scores: dict[str, list[float]] = defaultdict(list)
    both_bad: dict[str, int] = defaultdict(int)
    for outcome in outcomes:
        if model_id not in (outcome.model_a_id, outcome.model_b_id):
            continue
        score = outcome.score_for(model_id)
        if score is None:
            both_bad[outcome.prompt_id] += 1
        else:
            scores[outcome.prompt_id].append(score)

    samples = []
    for prompt_id in sorted(set(scores) | set(both_bad)):
        prompt_scores = scores.get(prompt_id, [])
        samples.append(
            PromptSample(
                prompt_id=prompt_id,
                votes=len(prompt_scores),
                average_score=float(np.mean(prompt_scores)) if prompt_scores else 0.0,
                both_bad=both_bad.get(prompt_id, 0),
            )
        )
    return samples


def recent_form(scores_newest_first: Sequence[float], window: int = RECENT_FORM_WINDOW) -> RecentForm:
    """Average of the newest window of scores against the window before it."""
    recent = scores_newest_first[:window]
    prior = scores_newest_first[window:window * 2]
    recent_avg = float(np.mean(recent)) if len(recent) else None
    prior_avg = float(np.mean(prior)) if len(prior) else None
    delta = recent_avg - prior_avg if recent_avg is not None and prior_avg is not None else None
    return {"recentForm": recent_avg, "priorForm": prior_avg, "recentDelta": delta}


class DispersionAnalyzer:
    """Leaderboard consistency and recent-form statistics."""

    def __init__(self, store: ArenaStore):
        self.store = store

    def active_prompt_count(self) -> int:
        return len(self.store.list_prompts(active_only=True))

    def dispersion_by_model(self) -> dict[str, ScoreDispersion]:
        """Dispersion for every model that appears in a rated vote."""
        outcomes = self.store.load_vote_outcomes(choices=RATED_CHOICES)
        active = self.active_prompt_count()

        model_ids = sorted({m for o in outcomes for m in (o.model_a_id, o.model_b_id)})
        result = {m: summarize_dispersion(prompt_samples(outcomes, m), active) for m in model_ids}
        logger.debug(f"Computed dispersion for {len(result)} models over {len(outcomes)} rated votes")
        return result

    def model_dispersion(self, model_id: str) -> ScoreDispersion:
        outcomes = self.store.load_vote_outcomes(choices=RATED_CHOICES, model_id=model_id)
        return summarize_dispersion(prompt_samples(outcomes, model_id), self.active_prompt_count())

    def model_recent_form(self, model_id: str) -> RecentForm:
        outcomes = self.store.load_vote_outcomes(choices=RATED_CHOICES, model_id=model_id)
        scores = [o.score_for(model_id) for o in reversed(outcomes)]
        return recent_form([s for s in scores if s is not None])
