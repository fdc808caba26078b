"""
Eligibility index.

Answers which prompts can be shown in the arena under the fixed build
settings, and which models have a build for each of them.
"""

from collections import defaultdict
from dataclasses import dataclass, field

from .config import ArenaSettings
from .interfaces import ArenaStore
from .logging_config import get_logger
from .models import Prompt

# Module-level logger
logger = get_logger("eligibility")

MIN_MODELS_PER_PROMPT = 2


@dataclass
class Eligibility:
    """Eligible prompts and, per prompt and per model, who can meet where."""

    prompt_models: dict[str, frozenset[str]] = field(default_factory=dict)
    model_prompts: dict[str, frozenset[str]] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.prompt_models

    @property
    def prompt_ids(self) -> list[str]:
        return sorted(self.prompt_models)

    @property
    def model_ids(self) -> list[str]:
        return sorted(self.model_prompts)

    def is_eligible_prompt(self, prompt_id: str) -> bool:
        return prompt_id in self.prompt_models

    def models_for_prompt(self, prompt_id: str) -> frozenset[str]:
        return self.prompt_models.get(prompt_id, frozenset())

    def prompts_for_model(self, model_id: str) -> frozenset[str]:
        return self.model_prompts.get(model_id, frozenset())

    def common_prompts(self, model_a: str, model_b: str) -> frozenset[str]:
        """Eligible prompts both models have a build for."""
        return self.prompts_for_model(model_a) & self.prompts_for_model(model_b)


class EligibilityIndex:
    """Groups seeded builds by (prompt, model) under the arena settings."""

    def __init__(self, store: ArenaStore, settings: ArenaSettings):
        self.store = store
        self.settings = settings

    def build(self) -> Eligibility:
        """
        Compute the current eligibility.

        A prompt is eligible iff at least two distinct enabled, non-baseline
        models have a build for it. Models only appear through eligible prompts.
        """
        models_by_prompt: dict[str, set[str]] = defaultdict(set)
        for prompt_id, model_id in self.store.eligible_build_pairs(self.settings):
            models_by_prompt[prompt_id].add(model_id)

        prompt_models = {
            prompt_id: frozenset(model_ids)
            for prompt_id, model_ids in models_by_prompt.items()
            if len(model_ids) >= MIN_MODELS_PER_PROMPT
        }

        prompts_by_model: dict[str, set[str]] = defaultdict(set)
        for prompt_id, model_ids in prompt_models.items():
            for model_id in model_ids:
                prompts_by_model[model_id].add(prompt_id)

        eligibility = Eligibility(
            prompt_models=prompt_models,
            model_prompts={m: frozenset(p) for m, p in prompts_by_model.items()},
        )
        if eligibility.is_empty:
            logger.warning(f"No eligible prompts for settings {self.settings}")
        else:
            logger.debug(
                f"Eligibility: {len(eligibility.prompt_models)} prompts, {len(eligibility.model_prompts)} models"
            )
        return eligibility

    def list_prompts(self) -> list[Prompt]:
        """Eligible prompts in creation order."""
        eligibility = self.build()
        return [p for p in self.store.list_prompts() if eligibility.is_eligible_prompt(p.id)]
