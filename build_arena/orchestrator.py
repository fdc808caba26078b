"""
Traffic simulation for the build arena.

Runs matchup -> vote cycles on a thread pool, the way concurrent page views
hit the arena, and tolerates a bounded share of failures.
"""

from collections import Counter
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from loguru import Logger

from .interfaces import Voter
from .logging_config import get_logger
from .matchups import ArenaMatchmaker
from .models import Lane, VoteChoice
from .votes import VoteService

# Constants for failure threshold logic
EARLY_ABORT_THRESHOLD = 4      # Abort if 100% of first 4 rounds fail
LATE_ABORT_THRESHOLD = 50     # Only check failure rate after 50+ rounds
FAILURE_RATE_LIMIT = 0.2      # Abort if >20% failure rate after threshold


@dataclass
class SimulationConfig:
    """Configuration for a simulation run."""

    rounds: int = 200  # matchup -> vote cycles
    max_workers: int = 4  # thread pool size
    session_count: int = 25  # distinct simulated voter sessions
    progress_every: int = 50  # log progress every N rounds
    prompt_id: str | None = None  # constrain matchmaking to one prompt

    def __post_init__(self):
        """Validate configuration."""
        if self.rounds <= 0:
            raise ValueError(f"rounds must be positive, got {self.rounds}")
        if self.max_workers <= 0:
            raise ValueError(f"max_workers must be positive, got {self.max_workers}")
        if self.session_count <= 0:
            raise ValueError(f"session_count must be positive, got {self.session_count}")
        if self.progress_every <= 0:
            raise ValueError(f"progress_every must be positive, got {self.progress_every}")


@dataclass
class RoundResult:
    matchup_id: str
    lane: Lane | None
    choice: VoteChoice


@dataclass
class SimulationSummary:
    completed: int = 0
    failed: int = 0
    lane_counts: Counter[str] = field(default_factory=Counter)
    choice_counts: Counter[str] = field(default_factory=Counter)
    failure_log: list[tuple[int, str, str]] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return self.completed + self.failed


class ArenaSimulation:
    """Drives simulated traffic through the matchmaker and vote service."""

    def __init__(
        self,
        matchmaker: ArenaMatchmaker,
        vote_service: VoteService,
        voter: Voter,
        config: SimulationConfig,
    ):
        """Initialize simulation with all components."""
        self.matchmaker: ArenaMatchmaker = matchmaker
        self.vote_service: VoteService = vote_service
        self.voter: Voter = voter
        self.config: SimulationConfig = config
        self.summary: SimulationSummary = SimulationSummary()
        self.logger: Logger = get_logger("simulation")

    def _play_round(self, round_index: int) -> RoundResult:
        """One page view: fetch a matchup, vote on it."""
        created = self.matchmaker.next_matchup(self.config.prompt_id)
        choice = self.voter.vote(created)
        session_id = f"sim-session-{round_index % self.config.session_count}"
        _ = self.vote_service.record_vote(created.matchup.id, choice, session_id)
        return RoundResult(matchup_id=created.matchup.id, lane=created.matchup.sampling_lane, choice=choice)

    def run(self) -> SimulationSummary:
        """Run the configured number of rounds."""
        self.logger.info(f"Starting arena simulation with config: {self.config}")

        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            futures = dict[Future[RoundResult], int]()
            next_round = 0

            while next_round < self.config.rounds or futures:
                # Keep workers fed while rounds remain
                while len(futures) < self.config.max_workers and next_round < self.config.rounds:
                    futures[executor.submit(self._play_round, next_round)] = next_round
                    next_round += 1

                _ = wait(futures.keys(), return_when=FIRST_COMPLETED)
                self._process_completed_futures(futures)

        self.logger.info(
            f"Simulation complete: {self.summary.completed} rounds, {self.summary.failed} failures, "
            f"lanes {dict(self.summary.lane_counts)}"
        )
        return self.summary

    def _process_completed_futures(self, futures: dict[Future[RoundResult], int]) -> None:
        """Record finished rounds and enforce the failure thresholds (main thread only)."""
        for future in [f for f in futures if f.done()]:
            round_index = futures.pop(future)
            try:
                result = future.result()
            except Exception as e:
                self.logger.error(f"Round {round_index} failed: {e}")
                self.summary.failed += 1
                self.summary.failure_log.append((round_index, type(e).__name__, str(e)))

                attempted = self.summary.attempted
                if attempted >= EARLY_ABORT_THRESHOLD and self.summary.failed == attempted:
                    raise RuntimeError(f"100% failure rate in first {EARLY_ABORT_THRESHOLD} rounds - aborting") from e
                if attempted >= LATE_ABORT_THRESHOLD:
                    failure_rate = self.summary.failed / attempted
                    if failure_rate > FAILURE_RATE_LIMIT:
                        raise RuntimeError(
                            f"Failure rate {failure_rate:.1%} exceeds {FAILURE_RATE_LIMIT:.0%} threshold - aborting"
                        ) from e
                continue

            self.summary.completed += 1
            self.summary.lane_counts[result.lane.value if result.lane else "none"] += 1
            self.summary.choice_counts[result.choice.value] += 1
            self.logger.debug(f"Round {round_index}: matchup {result.matchup_id} -> {result.choice.value}")

            if self.summary.completed % self.config.progress_every == 0:
                progress = self.summary.completed / self.config.rounds * 100
                self.logger.info(f"Progress: {self.summary.completed}/{self.config.rounds} rounds ({progress:.1f}%)")
