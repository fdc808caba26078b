"""
CLI entry point for the build arena.

Parses arguments, loads configuration, and wires components.
"""

import argparse
import random
import sys
from argparse import Namespace

from dotenv import load_dotenv
from prettytable import PrettyTable

from .config import ArenaConfig
from .demo import DEMO_MODELS, DEMO_PROMPTS, demo_ground_truth, seed_demo
from .exceptions import ArenaError, ConfigurationError
from .logging_config import get_logger, setup_logging
from .orchestrator import ArenaSimulation, SimulationConfig
from .services import ArenaServices
from .voters import SimulatedVoter


def parse_args(argv: list[str] | None = None) -> Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Build Arena - Pairwise Matchmaking and Rating Engine"
    )
    _ = parser.add_argument(
        "--database-url",
        help="SQLAlchemy database URL (default: ARENA_DATABASE_URL or sqlite:///build_arena.db)"
    )
    _ = parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )
    _ = parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Set logging level (default: INFO)"
    )
    _ = parser.add_argument(
        "--log-file",
        help="Also write logs to this file"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    _ = serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    _ = serve.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")

    seed = subparsers.add_parser("seed-demo", help="Seed demo models, prompts and builds")
    _ = seed.add_argument(
        "--models",
        type=int,
        default=len(DEMO_MODELS),
        help=f"Number of demo models (default: {len(DEMO_MODELS)})"
    )
    _ = seed.add_argument(
        "--prompts",
        type=int,
        default=len(DEMO_PROMPTS),
        help=f"Number of demo prompts (default: {len(DEMO_PROMPTS)})"
    )

    simulate = subparsers.add_parser("simulate", help="Run simulated matchup/vote traffic")
    _ = simulate.add_argument("--rounds", type=int, default=200, help="Matchup/vote cycles (default: 200)")
    _ = simulate.add_argument("--workers", type=int, default=4, help="Worker threads (default: 4)")
    _ = simulate.add_argument("--noise", type=float, default=0.1, help="Voter noise (default: 0.1)")
    _ = simulate.add_argument("--tie-margin", type=float, default=0.02, help="TIE margin (default: 0.02)")
    _ = simulate.add_argument(
        "--both-bad-below",
        type=float,
        default=0.45,
        help="BOTH_BAD when both sides score under this (default: 0.45)"
    )
    _ = simulate.add_argument("--prompt-id", help="Constrain matchmaking to one prompt")
    _ = simulate.add_argument("--seed", type=int, help="Random seed")

    _ = subparsers.add_parser("leaderboard", help="Print the leaderboard")

    return parser.parse_args(argv)


def load_config(args: Namespace) -> ArenaConfig:
    """Build configuration from the environment and CLI overrides."""
    config = ArenaConfig.from_env()
    if args.database_url:
        config.database_url = args.database_url
    return config


def print_leaderboard(services: ArenaServices) -> None:
    rows = services.leaderboard.leaderboard()
    table = PrettyTable()
    table.field_names = ["Rank", "Model", "Rank Score", "Rating", "RD", "W-L-D", "Both Bad", "Coverage", "Consistency", "Tier"]
    for column in ("Rank", "Rank Score", "Rating", "RD", "Both Bad", "Coverage", "Consistency"):
        table.align[column] = "r"

    for row in rows:
        consistency = row["consistency"]
        table.add_row([
            row["rank"],
            row["displayName"],
            f"{row['rankScore']:.1f}",
            f"{row['eloRating']:.1f}",
            f"{row['ratingDeviation']:.1f}",
            f"{row['winCount']}-{row['lossCount']}-{row['drawCount']}",
            row["bothBadCount"],
            f"{row['promptCoverage'] * 100:.0f}%",
            "-" if consistency is None else consistency,
            row["stability"],
        ])
    print(table)


def run_serve(config: ArenaConfig, host: str, port: int) -> None:
    import uvicorn

    from .api import create_app

    uvicorn.run(create_app(config), host=host, port=port)


def run_simulate(services: ArenaServices, args: Namespace, rng: random.Random) -> None:
    voter = SimulatedVoter(
        demo_ground_truth(),
        noise=args.noise,
        tie_margin=args.tie_margin,
        both_bad_below=args.both_bad_below,
        rng=rng,
    )
    simulation = ArenaSimulation(
        services.matchmaker,
        services.votes,
        voter,
        SimulationConfig(rounds=args.rounds, max_workers=args.workers, prompt_id=args.prompt_id),
    )
    summary = simulation.run()

    print(f"Completed {summary.completed} rounds ({summary.failed} failed)")
    print(f"Lanes: {dict(summary.lane_counts)}")
    print(f"Choices: {dict(summary.choice_counts)}")
    print_leaderboard(services)


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    _ = load_dotenv()
    args = parse_args(argv)

    setup_logging(level=args.log_level, debug=args.debug, log_file=args.log_file)
    logger = get_logger("main")

    try:
        config = load_config(args)
        if args.command == "serve":
            run_serve(config, args.host, args.port)
            return

        rng = random.Random(getattr(args, "seed", None))
        services = ArenaServices.build(config, rng=rng)

        if args.command == "seed-demo":
            models, prompts = seed_demo(services.store, config.settings, args.models, args.prompts, rng)
            print(f"Seeded {len(models)} models and {len(prompts)} prompts into {config.database_url}")
        elif args.command == "simulate":
            run_simulate(services, args, rng)
        elif args.command == "leaderboard":
            print_leaderboard(services)

    except (ArenaError, ConfigurationError) as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        print("\nInterrupted by user")
        sys.exit(1)


if __name__ == "__main__":
    main()
