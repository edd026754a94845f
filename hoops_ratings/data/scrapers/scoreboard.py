"""Daily scoreboard scanning: game-ID discovery and conference metadata."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ...models.game import ConferenceInfo
from ..divisions import DivisionProfile
from ..tree_walk import iter_strings
from .ncaa_api import UpstreamError

logger = logging.getLogger(__name__)

GAME_PATH_RE = re.compile(r"/game/(\d+)")
NCAA_GAME_URL = "https://www.ncaa.com/game/{game_id}"


def extract_game_ids(payload: Any) -> List[str]:
    """Return every ``/game/<digits>`` id found in any string of ``payload``.

    Order of first appearance is kept and duplicates are dropped.
    """
    seen = set()
    ids: List[str] = []
    for text in iter_strings(payload):
        for game_id in GAME_PATH_RE.findall(text):
            if game_id not in seen:
                seen.add(game_id)
                ids.append(game_id)
    return ids


def conference_code(side: Any) -> Optional[str]:
    if not isinstance(side, dict):
        return None
    conferences = side.get("conferences")
    if isinstance(conferences, list) and conferences and isinstance(conferences[0], dict):
        code = conferences[0].get("conferenceSeo") or conferences[0].get("seo")
        if code:
            return str(code).strip().lower()
    for key in ("conferenceSeo", "conference"):
        code = side.get(key)
        if isinstance(code, str) and code.strip():
            return code.strip().lower()
    return None


def extract_conference_info(game_obj: Any) -> Tuple[Optional[str], Optional[ConferenceInfo]]:
    """Read ``(game_id, ConferenceInfo)`` from one scoreboard ``games[]`` entry.

    Missing metadata is not an error; the caller simply gets ``(None, None)``
    or a ConferenceInfo with empty codes.
    """
    if not isinstance(game_obj, dict):
        return None, None
    game = game_obj.get("game") if isinstance(game_obj.get("game"), dict) else game_obj

    game_id = game.get("gameID") or game.get("gameId") or game.get("id")
    if game_id is None:
        url = game.get("url")
        match = GAME_PATH_RE.search(url) if isinstance(url, str) else None
        game_id = match.group(1) if match else None
    if game_id is None:
        return None, None

    info = ConferenceInfo(
        home_conference=conference_code(game.get("home")),
        away_conference=conference_code(game.get("away")),
    )
    return str(game_id), info


@dataclass
class ScanResult:
    """Game IDs discovered over a window of days, in discovery order."""

    game_ids: List[str] = field(default_factory=list)
    game_dates: Dict[str, str] = field(default_factory=dict)
    conferences: Dict[str, ConferenceInfo] = field(default_factory=dict)
    days_scanned: int = 0
    days_failed: int = 0

    def add(self, game_id: str, day: str) -> None:
        if game_id not in self.game_dates:
            self.game_dates[game_id] = day
            self.game_ids.append(game_id)

    @property
    def all_days_failed(self) -> bool:
        return self.days_scanned > 0 and self.days_failed == self.days_scanned


class ScheduleScanner:
    """Enumerates candidate game IDs for a division, one scoreboard day at a time."""

    def __init__(self, client, profile: DivisionProfile):
        self.client = client
        self.profile = profile

    def scan_day(self, day: date, result: ScanResult) -> bool:
        """Scan every listing for ``day`` into ``result``; False if all listings failed."""
        day_str = day.isoformat()
        failures = 0
        for listing in self.profile.listings:
            try:
                payload = self.client.fetch_scoreboard(
                    self.profile.sport, self.profile.division, day, listing
                )
            except UpstreamError as exc:
                failures += 1
                logger.warning("Scoreboard %s/%s unavailable: %s", day_str, listing, exc)
                continue

            for game_id in extract_game_ids(payload):
                result.add(game_id, day_str)

            games = payload.get("games") if isinstance(payload, dict) else None
            for game_obj in games if isinstance(games, list) else []:
                game_id, info = extract_conference_info(game_obj)
                if game_id and info is not None:
                    result.conferences[game_id] = info

        return failures < len(self.profile.listings)

    def scan(self, days: Iterable[date]) -> ScanResult:
        result = ScanResult()
        for day in days:
            result.days_scanned += 1
            before = len(result.game_ids)
            if not self.scan_day(day, result):
                result.days_failed += 1
                continue
            logger.info("%s: %d games listed", day.isoformat(), len(result.game_ids) - before)
        return result


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def season_dates(season_start: date, today: Optional[date] = None) -> List[date]:
    """Every day from ``season_start`` through ``today`` inclusive."""
    end = today or utc_today()
    span = (end - season_start).days
    return [season_start + timedelta(days=i) for i in range(span + 1)]


def lookback_dates(today: Optional[date] = None, days: int = 2) -> List[date]:
    """The ``days`` days before ``today``, most recent first."""
    end = today or utc_today()
    return [end - timedelta(days=i) for i in range(1, max(0, days) + 1)]


@dataclass(frozen=True)
class MissingGame:
    game_id: str
    date: str

    @property
    def ncaa_url(self) -> str:
        return NCAA_GAME_URL.format(game_id=self.game_id)

    def to_dict(self) -> Dict[str, str]:
        return {
            "game_id": self.game_id,
            "date": self.date,
            "ncaa_url": self.ncaa_url,
            "status": "NEEDS_MANUAL_ENTRY",
        }


def find_missing_games(scan: ScanResult, known_game_ids) -> List[MissingGame]:
    """Scheduled games the scoreboard lists that were never folded into totals."""
    return [
        MissingGame(game_id=gid, date=scan.game_dates[gid])
        for gid in scan.game_ids
        if gid not in known_game_ids
    ]
