"""
Lane selector implementations.

Provides the four matchmaking lanes and the selector that chains them.

Available implementations:
- CoverageLane: Lifts the models with the least prompt coverage
- ContenderLane: Sharpens the ordering at the top of the leaderboard
- UncertaintyLane: Pairs high-deviation models with evenly matched opponents
- ExplorationLane: Spreads exposure over rarely-voted prompts and models
"""

from .contender_lane import ContenderLane
from .context import SelectionContext
from .coverage_lane import CoverageLane
from .exploration_lane import ExplorationLane
from .lane_selector import LaneSelector
from .sampling import choose_prompt_for_pair, weighted_pick
from .uncertainty_lane import UncertaintyLane

__all__ = [
    "ContenderLane",
    "CoverageLane",
    "ExplorationLane",
    "LaneSelector",
    "SelectionContext",
    "UncertaintyLane",
    "choose_prompt_for_pair",
    "weighted_pick",
]
