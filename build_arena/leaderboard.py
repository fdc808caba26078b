"""
Leaderboard and model detail.

Ranks enabled models by conservative rating and enriches each row with
dispersion statistics. Results are memoized in the stats cache.
"""

from collections import defaultdict
from typing import Any

from .cache import StatsCache
from .config import ArenaSettings
from .dispersion import DispersionAnalyzer, summarize_dispersion
from .exceptions import NotFound
from .interfaces import ArenaStore, ScoreDispersion
from .logging_config import get_logger
from .models import Model, VoteChoice, VoteOutcome
from .rankers.trueskill_ranker import confidence_from_rd, stability_tier

# Module-level logger
logger = get_logger("leaderboard")


def quality_floor_score(model: Model) -> float | None:
    """Share of a model's votes that were not BOTH_BAD."""
    if model.total_votes <= 0:
        return None
    return max(0.0, 1 - model.both_bad_count / model.total_votes)


def _model_summary(model: Model) -> dict[str, Any]:
    return {
        "key": model.key,
        "provider": model.provider,
        "displayName": model.display_name,
        "eloRating": model.elo_rating,
        "ratingDeviation": model.rating_deviation,
        "rankScore": model.conservative_rating,
        "confidence": confidence_from_rd(model.rating_deviation),
        "shownCount": model.shown_count,
        "winCount": model.win_count,
        "lossCount": model.loss_count,
        "drawCount": model.draw_count,
        "bothBadCount": model.both_bad_count,
    }


def _empty_dispersion(active_prompts: int) -> ScoreDispersion:
    return summarize_dispersion([], active_prompts)


def _tally(outcomes: list[VoteOutcome], model_id: str) -> dict[str, Any]:
    wins = losses = draws = both_bad = 0
    scores: list[float] = []
    for outcome in outcomes:
        score = outcome.score_for(model_id)
        if score is None:
            both_bad += 1
            continue
        scores.append(score)
        if outcome.choice is VoteChoice.TIE:
            draws += 1
        elif score == 1.0:
            wins += 1
        else:
            losses += 1
    return {
        "votes": len(scores),
        "averageScore": sum(scores) / len(scores) if scores else 0.0,
        "wins": wins,
        "losses": losses,
        "draws": draws,
        "bothBad": both_bad,
    }


class LeaderboardService:
    """Builds leaderboard rows and per-model detail views."""

    def __init__(
        self,
        store: ArenaStore,
        settings: ArenaSettings,
        cache: StatsCache | None = None,
    ):
        self.store = store
        self.settings = settings
        self.analyzer = DispersionAnalyzer(store)
        self.cache = cache or StatsCache()

    def leaderboard(self) -> list[dict[str, Any]]:
        return self.cache.get_or_compute("leaderboard", self._compute_leaderboard)

    def model_detail(self, model_key: str) -> dict[str, Any]:
        """
        Detail view for one model.

        Raises:
            NotFound: Unknown, disabled or baseline model
        """
        detail = self.cache.get_or_compute(("model", model_key), lambda: self._compute_detail(model_key))
        if detail is None:
            raise NotFound(f"Model not found: {model_key}")
        return detail

    def _compute_leaderboard(self) -> list[dict[str, Any]]:
        models = sorted(
            self.store.list_models(enabled_only=True),
            key=lambda m: (-m.conservative_rating, -m.elo_rating, m.display_name),
        )
        dispersion = self.analyzer.dispersion_by_model()
        active = self.analyzer.active_prompt_count()

        rows = []
        for rank, model in enumerate(models, start=1):
            stats = dispersion.get(model.id) or _empty_dispersion(active)
            row = {"rank": rank, **_model_summary(model), **stats}
            row["stability"] = stability_tier(model.decisive_votes, stats["promptCoverage"], model.rating_deviation)
            row["qualityFloorScore"] = quality_floor_score(model)
            rows.append(row)

        logger.debug(f"Leaderboard computed for {len(rows)} models")
        return rows

    def _compute_detail(self, model_key: str) -> dict[str, Any] | None:
        model = self.store.get_model_by_key(model_key)
        if model is None or not model.enabled or model.is_baseline:
            return None

        outcomes = self.store.load_vote_outcomes(model_id=model.id)
        dispersion = self.analyzer.model_dispersion(model.id)
        form = self.analyzer.model_recent_form(model.id)

        decisive = model.decisive_votes
        summary = {
            **dispersion,
            "totalVotes": model.total_votes,
            "decisiveVotes": decisive,
            "winRate": model.win_count / decisive if decisive > 0 else None,
            "recentForm": form["recentForm"],
            "recentDelta": form["recentDelta"],
            "qualityFloorScore": quality_floor_score(model),
        }

        model_view = _model_summary(model)
        model_view["stability"] = stability_tier(decisive, dispersion["promptCoverage"], model.rating_deviation)

        return {
            "model": model_view,
            "summary": summary,
            "prompts": self._prompt_breakdown(model, outcomes),
            "opponents": self._opponent_breakdown(model, outcomes),
        }

    def _prompt_breakdown(self, model: Model, outcomes: list[VoteOutcome]) -> list[dict[str, Any]]:
        by_prompt: dict[str, list[VoteOutcome]] = defaultdict(list)
        for outcome in outcomes:
            by_prompt[outcome.prompt_id].append(outcome)
        builds = {b.prompt_id: b for b in self.store.list_builds_for_model(model.id, self.settings)}
        prompts = {p.id: p for p in self.store.list_prompts(active_only=False)}

        rows = []
        for prompt_id in sorted(set(by_prompt) | set(builds)):
            prompt = prompts.get(prompt_id)
            build = builds.get(prompt_id)
            rows.append(
                {
                    "promptId": prompt_id,
                    "promptText": prompt.text if prompt else "Untitled prompt",
                    **_tally(by_prompt.get(prompt_id, []), model.id),
                    "build": {
                        "buildId": build.id,
                        "gridSize": build.grid_size,
                        "palette": build.palette,
                        "mode": build.mode,
                        "blockCount": build.block_count,
                    }
                    if build
                    else None,
                }
            )
        rows.sort(key=lambda r: (-r["votes"], -r["averageScore"]))
        return rows

    def _opponent_breakdown(self, model: Model, outcomes: list[VoteOutcome]) -> list[dict[str, Any]]:
        by_opponent: dict[str, list[VoteOutcome]] = defaultdict(list)
        for outcome in outcomes:
            by_opponent[outcome.opponent_of(model.id)].append(outcome)
        opponents = self.store.get_models(by_opponent)

        rows = []
        for opponent_id, opponent_outcomes in by_opponent.items():
            opponent = opponents.get(opponent_id)
            if opponent is None:
                continue
            rows.append(
                {
                    "key": opponent.key,
                    "displayName": opponent.display_name,
                    **_tally(opponent_outcomes, model.id),
                }
            )
        rows.sort(key=lambda r: (-r["votes"], -r["averageScore"], r["key"]))
        return rows
