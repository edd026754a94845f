"""Incremental and full-rebuild ratings runs for one division."""

from __future__ import annotations

import dataclasses
import json
import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from ..divisions import DivisionProfile, get_division
from ..features.efficiency import compute_ratings
from ..features.player_ratings import compute_player_ratings
from ..scrapers.boxscore import BoxScoreExtractor
from ..scrapers.ncaa_api import NCAAApiClient, RetryPolicy, UpstreamError
from ..scrapers.scoreboard import (
    MissingGame,
    ScheduleScanner,
    find_missing_games,
    lookback_dates,
    season_dates,
)
from .aggregator import SeasonAggregator, SeasonState
from .store import JsonFileStore, SeasonSnapshot, SeasonStore, SQLiteStore, StoreError
from .validators import RunGuard, RunGuardError

logger = logging.getLogger(__name__)

DEFAULT_DB_FILENAME = "hoops_ratings.db"


@dataclass
class PipelineConfig:
    """Configuration for one division's ratings run."""

    division: str = "mens-d1"
    output_dir: str = "data/processed"
    store: str = "json"
    db_path: Optional[str] = None
    base_url: Optional[str] = None

    lookback_days: int = 2
    concurrency: int = 4
    request_delay_seconds: float = 0.4
    timeout_seconds: float = 20.0
    retries: int = 3

    min_teams: Optional[int] = None
    restrict_to_division: Optional[bool] = None

    def resolved_db_path(self) -> str:
        return (
            self.db_path
            or os.getenv("HOOPS_RATINGS_DB_PATH")
            or str(Path(self.output_dir) / DEFAULT_DB_FILENAME)
        )


@dataclass
class RunReport:
    """Run-level accounting; per-item failures are counted, not raised."""

    division: str
    mode: str
    days_scanned: int = 0
    days_failed: int = 0
    games_found: int = 0
    games_new: int = 0
    games_fetched: int = 0
    games_parsed: int = 0
    games_failed: int = 0
    games_merged: int = 0
    teams: int = 0
    players: int = 0
    committed: bool = False
    success: bool = False
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1


@dataclass
class AuditReport:
    """Outcome of a missing-game audit over a window of scoreboard days."""

    missing: List[MissingGame] = field(default_factory=list)
    days_scanned: int = 0
    days_failed: int = 0

    @property
    def all_days_failed(self) -> bool:
        return self.days_scanned > 0 and self.days_failed == self.days_scanned

    @property
    def exit_code(self) -> int:
        return 1 if self.all_days_failed else 0


def build_store(config: PipelineConfig, profile: DivisionProfile) -> SeasonStore:
    if config.store == "json":
        return JsonFileStore(config.output_dir, profile.file_prefix)
    if config.store == "sqlite":
        return SQLiteStore(config.resolved_db_path(), profile.slug)
    raise ValueError(f"Unknown store '{config.store}' (expected 'json' or 'sqlite')")


class RatingsPipeline:
    """
    Scan schedule -> fetch box scores -> extract -> merge -> rate -> guard -> commit.

    Box scores are fetched by a bounded worker pool; workers share nothing but
    the client and hand back independent results, which are merged
    sequentially afterwards.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        client: Optional[NCAAApiClient] = None,
        store: Optional[SeasonStore] = None,
        extractor: Optional[BoxScoreExtractor] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config or PipelineConfig()
        self.profile = get_division(self.config.division)
        self.client = client or NCAAApiClient(
            base_url=self.config.base_url,
            retry_policy=RetryPolicy(max_retries=self.config.retries),
            timeout_seconds=self.config.timeout_seconds,
        )
        self.store = store or build_store(self.config, self.profile)
        self.scanner = ScheduleScanner(self.client, self.profile)
        self.extractor = extractor or BoxScoreExtractor()
        self.aggregator = SeasonAggregator(self.profile.conference_filter(self.config.restrict_to_division))
        min_teams = self.config.min_teams if self.config.min_teams is not None else self.profile.min_teams
        self.guard = RunGuard(min_teams)
        self._sleep = sleep

    def run_incremental(self, today: Optional[date] = None) -> RunReport:
        days = lookback_dates(today, self.config.lookback_days)
        return self._run("incremental", days, self.store.load_state(), replace=False)

    def run_rebuild(self, season_start: Optional[date] = None, today: Optional[date] = None) -> RunReport:
        start = season_start or self.profile.season_start_date
        days = season_dates(start, today)
        return self._run("rebuild", days, SeasonState.empty(), replace=True, season_start=start)

    def fetch_boxscores(self, game_ids: Sequence[str]) -> List[Tuple[str, Optional[Any]]]:
        """Fetch payloads in input order; a failed fetch yields ``(game_id, None)``."""
        delay = max(0.0, self.config.request_delay_seconds)

        def _fetch(game_id: str) -> Tuple[str, Optional[Any]]:
            try:
                return game_id, self.client.fetch_boxscore(game_id)
            except UpstreamError as exc:
                logger.warning("Box score %s failed: %s", game_id, exc)
                return game_id, None
            finally:
                if delay:
                    self._sleep(delay)

        workers = max(1, min(self.config.concurrency, len(game_ids) or 1))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(_fetch, game_ids))

    def _run(
        self,
        mode: str,
        days: List[date],
        state: SeasonState,
        replace: bool,
        season_start: Optional[date] = None,
    ) -> RunReport:
        report = RunReport(division=self.profile.slug, mode=mode)
        logger.info("Starting %s run for %s over %d days", mode, self.profile.slug, len(days))

        scan = self.scanner.scan(days)
        report.days_scanned = scan.days_scanned
        report.days_failed = scan.days_failed
        if scan.all_days_failed:
            report.errors.append(f"all {scan.days_scanned} scoreboard days failed")
            logger.error("Every scoreboard request failed; nothing committed")
            return report

        report.games_found = len(scan.game_ids)
        new_ids = [gid for gid in scan.game_ids if gid not in state.game_ids]
        report.games_new = len(new_ids)
        if not new_ids:
            logger.info("No new games to process")
            report.success = True
            return report

        games = []
        for game_id, payload in self.fetch_boxscores(new_ids):
            if payload is None:
                report.games_failed += 1
                continue
            report.games_fetched += 1
            record = self.extractor.extract(
                game_id,
                payload,
                game_date=scan.game_dates.get(game_id, ""),
                conference_info=scan.conferences.get(game_id),
            )
            if record is None:
                report.games_failed += 1
                continue
            report.games_parsed += 1
            games.append(record)

        logger.info(
            "Parsed %d/%d new games (%d failed)", report.games_parsed, report.games_new, report.games_failed
        )
        if not games and not replace:
            logger.info("No games parsed successfully; nothing to commit")
            report.success = True
            return report

        merged = self.aggregator.merge_all(state, games)
        new_state = merged.state
        report.games_merged = len(merged.merged)
        ratings = compute_ratings(new_state.teams.values())
        report.teams = len(ratings)
        report.players = len(new_state.players)

        try:
            self.guard.check(ratings)
        except RunGuardError as exc:
            report.errors.append(str(exc))
            logger.error("%s; prior output left untouched", exc)
            return report

        snapshot = SeasonSnapshot(
            division=self.profile.slug,
            state=new_state,
            ratings=ratings,
            player_ratings=compute_player_ratings(new_state.players.values(), new_state.teams),
            new_games=merged.merged,
            season_start=season_start.isoformat() if season_start else None,
        )
        try:
            self.store.commit(snapshot, replace=replace)
        except StoreError as exc:
            report.errors.append(str(exc))
            logger.error("%s", exc)
            return report

        report.committed = True
        report.success = True
        logger.info("Committed %d teams and %d players", report.teams, report.players)
        return report

    def audit(self, season_start: Optional[date] = None, today: Optional[date] = None) -> AuditReport:
        """Scheduled games over the season that never made it into the cache."""
        start = season_start or self.profile.season_start_date
        scan = self.scanner.scan(season_dates(start, today))
        report = AuditReport(days_scanned=scan.days_scanned, days_failed=scan.days_failed)
        if scan.all_days_failed:
            logger.error("Every scoreboard request failed; the audit has no schedule to check")
            return report
        report.missing = find_missing_games(scan, self.store.load_state().game_ids)
        logger.info("%d of %d scheduled games missing", len(report.missing), len(scan.game_ids))
        return report


def write_missing_games_report(
    missing: Sequence[MissingGame], output_dir: str, prefix: str
) -> Tuple[Path, Path]:
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    rows = [m.to_dict() for m in missing]

    json_path = out / f"{prefix}_missing_games.json"
    with open(json_path, "w", encoding="utf-8") as f:
        json.dump({"total_missing": len(rows), "games": rows}, f, indent=2)

    csv_path = out / f"{prefix}_missing_games.csv"
    pd.DataFrame(rows, columns=["game_id", "date", "ncaa_url", "status"]).to_csv(csv_path, index=False)
    return json_path, csv_path
