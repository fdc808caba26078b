"""
Demo data.

Seeds a small arena (models, prompts, one build per pair) and provides the
latent qualities the simulated voter uses for it.
"""

import random

from .config import ArenaSettings
from .logging_config import get_logger
from .models import Model, Prompt
from .storage import SQLArenaStore

# Module-level logger
logger = get_logger("demo")

# key, provider, display name, latent quality
DEMO_MODELS: list[tuple[str, str, str, float]] = [
    ("atlas-large", "atlas", "Atlas Large", 0.90),
    ("atlas-mini", "atlas", "Atlas Mini", 0.62),
    ("boreal-pro", "boreal", "Boreal Pro", 0.81),
    ("boreal-flash", "boreal", "Boreal Flash", 0.55),
    ("cinder-7", "cinder", "Cinder 7", 0.70),
    ("cinder-3", "cinder", "Cinder 3", 0.40),
    ("drift-open", "drift", "Drift Open", 0.48),
    ("ember-r1", "ember", "Ember R1", 0.76),
]

DEMO_PROMPTS: list[str] = [
    "A medieval stone castle with four towers and a moat",
    "A cozy wooden cabin in a snowy pine forest",
    "A lighthouse on a rocky cliff above crashing waves",
    "A floating island with a waterfall and a small temple",
    "A steampunk airship docked at a brass tower",
    "A japanese pagoda surrounded by cherry trees",
]


def demo_ground_truth() -> dict[str, float]:
    return {key: quality for key, _, _, quality in DEMO_MODELS}


def _demo_payload(rng: random.Random, grid_size: int) -> dict[str, object]:
    blocks = [
        {"x": rng.randrange(grid_size), "y": rng.randrange(grid_size), "z": rng.randrange(grid_size), "type": "stone"}
        for _ in range(rng.randint(20, 60))
    ]
    return {"version": 1, "boxes": [], "lines": [], "blocks": blocks}


def seed_demo(
    store: SQLArenaStore,
    settings: ArenaSettings,
    model_count: int = len(DEMO_MODELS),
    prompt_count: int = len(DEMO_PROMPTS),
    rng: random.Random | None = None,
) -> tuple[list[Model], list[Prompt]]:
    """
    Seed demo models and prompts with a build for every (prompt, model).

    Models whose key already exists are reused.
    """
    rng = rng or random.Random(0)
    models: list[Model] = []
    for key, provider, display_name, _ in DEMO_MODELS[:model_count]:
        existing = store.get_model_by_key(key)
        models.append(existing or store.add_model(key, provider=provider, display_name=display_name))

    prompts = [store.add_prompt(text) for text in DEMO_PROMPTS[:prompt_count]]
    for prompt in prompts:
        for model in models:
            _ = store.add_build(prompt.id, model.id, settings, payload=_demo_payload(rng, settings.grid_size))

    logger.info(f"Seeded {len(models)} models, {len(prompts)} prompts, {len(models) * len(prompts)} builds")
    return models, prompts
