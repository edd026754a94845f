"""Command-line entry points for division ratings runs."""

import argparse
import logging
import sys
from datetime import date

import pandas as pd

from .data.divisions import DIVISIONS, get_division
from .data.features.efficiency import FACTOR_KEYS, factor_report
from .data.ingestion.pipeline import (
    PipelineConfig,
    RatingsPipeline,
    RunReport,
    build_store,
    write_missing_games_report,
)

RATINGS_COLUMNS = ["rank", "team_name", "conference", "games", "wins", "losses", "adj_o", "adj_d", "adj_em", "adj_t"]


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got '{value}'") from None


def config_from_args(args) -> PipelineConfig:
    return PipelineConfig(
        division=args.division,
        output_dir=args.output_dir,
        store=args.store,
        db_path=args.db_path,
        lookback_days=getattr(args, "lookback_days", 2),
        concurrency=args.concurrency,
        request_delay_seconds=args.delay,
        timeout_seconds=args.timeout,
        retries=args.retries,
        min_teams=args.min_teams,
        restrict_to_division=True if args.restrict_to_division else None,
    )


def _print_report(report: RunReport) -> None:
    print(
        f"{report.division} {report.mode}: "
        f"{report.days_scanned} days scanned ({report.days_failed} failed), "
        f"{report.games_found} games found, {report.games_new} new, "
        f"{report.games_parsed} parsed, {report.games_failed} failed"
    )
    if report.committed:
        print(f"✓ Ratings updated: {report.teams} teams, {report.players} players")
    elif report.success:
        print("✓ Nothing new to commit")
    for err in report.errors:
        print(f"Error: {err}")


def run_incremental(args):
    """Fold the last few days of games into the persisted season."""
    report = RatingsPipeline(config_from_args(args)).run_incremental()
    _print_report(report)
    return report.exit_code


def run_rebuild(args):
    """Rebuild the whole season from scratch and replace persisted output."""
    report = RatingsPipeline(config_from_args(args)).run_rebuild(season_start=args.season_start)
    _print_report(report)
    return report.exit_code


def show_ratings(args):
    """Print (and optionally export) the persisted ratings table."""
    config = config_from_args(args)
    store = build_store(config, get_division(config.division))
    rows = store.load_ratings()
    if not rows:
        print(f"No ratings found for {config.division}. Run 'rebuild' first.")
        return 1

    df = pd.DataFrame([r.to_dict() for r in rows])[RATINGS_COLUMNS]
    if args.csv:
        df.to_csv(args.csv, index=False)
        print(f"✓ Wrote {len(df)} rows to {args.csv}")
    print(df.head(args.top).to_string(index=False, float_format=lambda v: f"{v:.1f}"))

    if args.team:
        report = factor_report(store.load_state().teams.values())
        entry = report["teams"].get(args.team)
        if entry is None:
            print(f"Team '{args.team}' not found")
            return 1
        table = pd.DataFrame(
            {
                "off": [entry["factors"]["off"][k] for k in FACTOR_KEYS],
                "off_rank": [entry["ranks"]["off"][k] for k in FACTOR_KEYS],
                "def": [entry["factors"]["def"][k] for k in FACTOR_KEYS],
                "def_rank": [entry["ranks"]["def"][k] for k in FACTOR_KEYS],
                "league_off": [report["averages"]["off"][k] for k in FACTOR_KEYS],
                "league_def": [report["averages"]["def"][k] for k in FACTOR_KEYS],
            },
            index=list(FACTOR_KEYS),
        )
        print(f"\nFour factors for {args.team} (of {report['league_size']} teams):")
        print(table.to_string(float_format=lambda v: f"{v:.1f}"))
    return 0


def run_audit(args):
    """List scheduled games that never made it into the season totals."""
    config = config_from_args(args)
    pipeline = RatingsPipeline(config)
    report = pipeline.audit(season_start=args.season_start)
    if report.all_days_failed:
        print(f"Error: all {report.days_scanned} scoreboard days failed; no audit report written")
        return report.exit_code
    json_path, csv_path = write_missing_games_report(
        report.missing, config.output_dir, pipeline.profile.file_prefix
    )
    print(f"✓ {len(report.missing)} missing games written to {json_path} and {csv_path}")
    return report.exit_code


def _common_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--division", "-d", default="mens-d1", choices=sorted(DIVISIONS))
    common.add_argument("--output-dir", default="data/processed", help="Directory for JSON artifacts")
    common.add_argument("--store", default="json", choices=["json", "sqlite"])
    common.add_argument("--db-path", default=None, help="SQLite path (default: $HOOPS_RATINGS_DB_PATH)")
    common.add_argument("--min-teams", type=int, default=None, help="Override the division's team floor")
    common.add_argument(
        "--restrict-to-division",
        action="store_true",
        help="Only aggregate teams from the division's known conferences",
    )
    common.add_argument("--concurrency", type=int, default=4, help="Box-score worker threads")
    common.add_argument("--delay", type=float, default=0.4, help="Seconds each worker waits between requests")
    common.add_argument("--timeout", type=float, default=20.0, help="Hard per-request timeout in seconds")
    common.add_argument("--retries", type=int, default=3, help="Retries per request")
    common.add_argument("--verbose", "-v", action="store_true")
    return common


def build_parser() -> argparse.ArgumentParser:
    common = _common_parser()
    parser = argparse.ArgumentParser(
        description="Box-score ingestion and raw efficiency ratings for college basketball"
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    inc = subparsers.add_parser("incremental", parents=[common], help="Process the last few days of games")
    inc.add_argument("--lookback-days", type=int, default=2)

    rebuild = subparsers.add_parser("rebuild", parents=[common], help="Rebuild the full season")
    rebuild.add_argument("--season-start", type=_parse_date, default=None, help="YYYY-MM-DD")

    ratings = subparsers.add_parser("ratings", parents=[common], help="Show persisted ratings")
    ratings.add_argument("--top", type=int, default=25)
    ratings.add_argument("--csv", default=None, help="Export the full table to CSV")
    ratings.add_argument("--team", default=None, help="Team id to show four factors for")

    audit = subparsers.add_parser("audit", parents=[common], help="Find scheduled games never processed")
    audit.add_argument("--season-start", type=_parse_date, default=None, help="YYYY-MM-DD")
    return parser


def main(argv=None):
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "incremental":
        return run_incremental(args)
    elif args.command == "rebuild":
        return run_rebuild(args)
    elif args.command == "ratings":
        return show_ratings(args)
    elif args.command == "audit":
        return run_audit(args)
    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
