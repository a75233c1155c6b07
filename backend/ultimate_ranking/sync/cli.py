#!/usr/bin/env python3
"""
CLI for the ranking batch jobs.

Usage:
    ufr-sync                              # Full sync for the current season
    ufr-sync --season 2024-25             # Full sync for 2024-25
    ufr-sync season-points                # Rebuild season points only
    ufr-sync rankings                     # Recompute category ranks only
    ufr-sync subupdates                   # Recompute subupdate global ranks only
    ufr-sync coefficients                 # Recompute regional coefficients only
    ufr-sync --backfill --seasons 4       # Full sync of the last 4 seasons
"""

import argparse
import logging
import sys
from typing import Optional

from ultimate_ranking.core.config import settings
from ultimate_ranking.core.logging import configure_logging
from ultimate_ranking.db.supabase import get_supabase_client
from ultimate_ranking.services.seasons import current_season, season_window
from ultimate_ranking.services.store import RankingDataError, RankingStore
from ultimate_ranking.sync.jobs import (
    sync_all,
    sync_regional_coefficients,
    sync_season_points,
    sync_season_rankings,
    sync_subupdate_rankings,
)

logger = logging.getLogger(__name__)

COMMANDS = {
    "season-points": sync_season_points,
    "rankings": sync_season_rankings,
    "subupdates": sync_subupdate_rankings,
    "coefficients": sync_regional_coefficients,
}


def run_sync(args: argparse.Namespace, store: RankingStore) -> int:
    """Run the sync based on CLI arguments."""
    season = args.season or current_season()

    if args.backfill:
        # Oldest first, each season's ranks build on the previous ones
        seasons = list(reversed(season_window(season, args.seasons)))
        logger.info(f"Backfilling {args.seasons} seasons: {seasons}")

        failed = False
        for label in seasons:
            logger.info(f"\n{'='*50}\nSyncing {label}\n{'='*50}")
            results = sync_all(store, label)
            _print_results(label, results)
            failed = failed or bool(results["errors"])
        return 1 if failed else 0

    if args.command:
        logger.info(f"Running {args.command} for {season}...")
        results = COMMANDS[args.command](store, season)
        print(f"\n✅ {args.command} synced for {season}: {_summary(results)}")
        return 0

    # Full sync
    logger.info(f"Running full sync for {season}...")
    results = sync_all(store, season)
    _print_results(season, results)
    return 1 if results["errors"] else 0


def _summary(results: dict) -> str:
    if "teams" in results:
        return f"{results['teams']} teams"
    if "subupdates" in results:
        return ", ".join(f"subupdate {n}: {c} teams" for n, c in results["subupdates"].items())
    if "coefficients" in results:
        return f"{len(results['coefficients'])} regions"
    return "done"


def _print_results(season: str, results: dict) -> None:
    """Print sync results summary."""
    print(f"\n{'='*50}")
    print(f"Sync Results for {season}")
    print(f"{'='*50}")

    for name in ("coefficients", "season_points", "rankings", "subupdates"):
        if name in results:
            print(f"{name.replace('_', ' ').capitalize():<14} {_summary(results[name])}")

    errors = results.get("errors", [])
    if errors:
        print(f"\n⚠️  {len(errors)} errors occurred:")
        for error in errors[:5]:
            print(f"   - {error}")
        if len(errors) > 5:
            print(f"   ... and {len(errors) - 5} more")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=f"{settings.PROJECT_NAME} - ranking tables sync",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ufr-sync                          # Full sync for the current season
  ufr-sync --season 2024-25         # Full sync for 2024-25
  ufr-sync season-points            # Rebuild season points only
  ufr-sync coefficients -v          # Regional coefficients with debug logging
  ufr-sync --backfill --seasons 4   # Backfill the last 4 seasons
        """,
    )

    parser.add_argument(
        "command",
        nargs="?",
        choices=list(COMMANDS),
        help="Specific sync command (default: full sync)",
    )

    parser.add_argument(
        "--season",
        type=str,
        help="Season to sync, e.g. 2024-25 (default: current season)",
    )

    parser.add_argument(
        "--backfill",
        action="store_true",
        help="Backfill multiple seasons",
    )

    parser.add_argument(
        "--seasons",
        type=int,
        default=4,
        help="Number of seasons to backfill (default: 4)",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    configure_logging("DEBUG" if args.verbose else settings.LOG_LEVEL)

    if args.season:
        try:
            season_window(args.season)
        except ValueError as e:
            print(f"Error: {e}")
            return 1

    try:
        return run_sync(args, RankingStore(get_supabase_client()))
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        return 1
    except RankingDataError as e:
        logger.error(f"Sync failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
