"""
Sampling helpers shared by the lanes.

weighted_pick draws one item by cumulative weight from an injected random
source; choose_prompt_for_pair surfaces the least-covered prompt for a pair.
"""

import random
from collections.abc import Callable, Iterable, Sequence
from typing import TypeVar

from ..coverage import CoverageSnapshot
from ..models import Lane

T = TypeVar("T")


def weighted_pick(
    items: Sequence[T],
    weight: Callable[[T], float],
    rng: random.Random | None = None,
) -> T | None:
    """
    Pick one item with probability proportional to its weight.

    Negative weights count as zero. When every weight is zero the pick is
    uniform.

    Args:
        items: Candidates, in a stable order
        weight: Weight function
        rng: Random source (defaults to the module-level generator)

    Returns:
        The picked item, or None for an empty sequence
    """
    if not items:
        return None
    source = rng or random
    weights = [max(0.0, float(weight(item))) for item in items]
    total = sum(weights)
    if total <= 0:
        return items[source.randrange(len(items))]

    r = source.random() * total
    for item, w in zip(items, weights):
        r -= w
        if r <= 0 and w > 0:
            return item
    # Float rounding can leave r slightly positive after the last item
    return next(item for item, w in reversed(list(zip(items, weights))) if w > 0)


def prompt_score(lane: Lane | None, votes_a: int, votes_b: int, pair_prompt_votes: int) -> float:
    """Lower score = less covered combination of pair and prompt."""
    if lane is Lane.COVERAGE:
        return votes_a + votes_b + pair_prompt_votes * 6
    if lane is Lane.CONTENDER:
        return pair_prompt_votes * 10 + 0.25 * abs(votes_a - votes_b)
    if lane is Lane.UNCERTAINTY:
        return pair_prompt_votes * 3 + abs(votes_a - votes_b) + (votes_a + votes_b) / 2
    if lane is Lane.EXPLORATION:
        return pair_prompt_votes * 2 + (votes_a + votes_b) / 2
    return pair_prompt_votes * 4 + votes_a + votes_b


def choose_prompt_for_pair(
    candidates: Iterable[str],
    lane: Lane | None,
    model_a: str,
    model_b: str,
    coverage: CoverageSnapshot,
    rng: random.Random | None = None,
) -> str | None:
    """
    Pick the prompt with the lowest lane score for a pair.

    Ties are broken uniformly at random so concurrent requests spread out.
    """
    scored = [
        (
            prompt_score(
                lane,
                coverage.model_prompt(model_a, prompt_id),
                coverage.model_prompt(model_b, prompt_id),
                coverage.pair_prompt(model_a, model_b, prompt_id),
            ),
            prompt_id,
        )
        for prompt_id in sorted(candidates)
    ]
    if not scored:
        return None
    best = min(score for score, _ in scored)
    lowest = [prompt_id for score, prompt_id in scored if score == best]
    if len(lowest) == 1:
        return lowest[0]
    return (rng or random).choice(lowest)
