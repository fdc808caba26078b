"""
Simulated voter implementation.

Answers matchups from latent model qualities with Gaussian noise, for
local simulations and tests.
"""

import random

from typing_extensions import override

from ..interfaces import Voter
from ..models import CreatedMatchup, VoteChoice


class SimulatedVoter(Voter):
    """
    Simulated voter for testing purposes.

    Compares noisy draws of each side's ground-truth quality.
    """

    def __init__(
        self,
        ground_truth: dict[str, float],
        noise: float = 0.1,
        tie_margin: float = 0.0,
        both_bad_below: float | None = None,
        rng: random.Random | None = None,
    ):
        """
        Initialize simulated voter.

        Args:
            ground_truth: Dict mapping model key to latent quality
            noise: Standard deviation of the Gaussian noise added per side
            tie_margin: Noisy qualities closer than this are voted TIE
            both_bad_below: Both noisy qualities under this are voted BOTH_BAD
            rng: Random source
        """
        self.ground_truth = ground_truth
        self.noise = max(0.0, noise)
        self.tie_margin = max(0.0, tie_margin)
        self.both_bad_below = both_bad_below
        self.rng = rng or random.Random()

    def _noisy_quality(self, model_key: str) -> float:
        quality = self.ground_truth.get(model_key, 0.0)
        if self.noise == 0:
            return quality
        return quality + self.rng.gauss(0, self.noise)

    @override
    def vote(self, created: CreatedMatchup) -> VoteChoice:
        quality_a = self._noisy_quality(created.a.model.key)
        quality_b = self._noisy_quality(created.b.model.key)

        if self.both_bad_below is not None and max(quality_a, quality_b) < self.both_bad_below:
            return VoteChoice.BOTH_BAD
        if abs(quality_a - quality_b) <= self.tie_margin:
            return VoteChoice.TIE
        return VoteChoice.A if quality_a > quality_b else VoteChoice.B

    def get_ground_truth(self) -> dict[str, float]:
        """Get ground truth qualities for debugging."""
        return self.ground_truth.copy()
