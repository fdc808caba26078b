"""
Selection context.

Everything a lane needs to make one pick: eligibility, coverage, the model
rows and the random source, plus the optional requested prompt that
constrains every lane.
"""

import random
from dataclasses import dataclass, field

from ..coverage import CoverageSnapshot
from ..eligibility import Eligibility
from ..models import Lane, Model
from .sampling import choose_prompt_for_pair


@dataclass
class SelectionContext:
    eligibility: Eligibility
    coverage: CoverageSnapshot
    models: dict[str, Model]
    requested_prompt_id: str | None = None
    rng: random.Random = field(default_factory=random.Random)

    def __post_init__(self) -> None:
        # An ineligible request falls back to unconstrained sampling
        if self.requested_prompt_id and not self.eligibility.is_eligible_prompt(self.requested_prompt_id):
            self.requested_prompt_id = None

    @property
    def is_constrained(self) -> bool:
        return self.requested_prompt_id is not None

    def candidate_models(self) -> list[Model]:
        """Models that can be matched, ordered by id."""
        if self.requested_prompt_id is not None:
            model_ids = self.eligibility.models_for_prompt(self.requested_prompt_id)
        else:
            model_ids = frozenset(self.eligibility.model_ids)
        return [self.models[m] for m in sorted(model_ids) if m in self.models]

    def prompt_ids(self) -> list[str]:
        if self.requested_prompt_id is not None:
            return [self.requested_prompt_id]
        return self.eligibility.prompt_ids

    def common_prompts(self, model_a: str, model_b: str) -> frozenset[str]:
        """Prompts both models have builds for, collapsed to the requested one if any."""
        common = self.eligibility.common_prompts(model_a, model_b)
        if self.requested_prompt_id is None:
            return common
        if self.requested_prompt_id in common:
            return frozenset({self.requested_prompt_id})
        return frozenset()

    def shares_prompt(self, model_a: str, model_b: str) -> bool:
        return model_a != model_b and bool(self.common_prompts(model_a, model_b))

    def opponents_of(self, anchor: Model) -> list[Model]:
        return [m for m in self.candidate_models() if self.shares_prompt(anchor.id, m.id)]

    def choose_prompt(self, model_a: str, model_b: str, lane: Lane) -> str | None:
        return choose_prompt_for_pair(
            self.common_prompts(model_a, model_b), lane, model_a, model_b, self.coverage, self.rng
        )
