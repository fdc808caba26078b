"""
Voter implementations.
"""

from .sim_voter import SimulatedVoter

__all__ = ["SimulatedVoter"]
