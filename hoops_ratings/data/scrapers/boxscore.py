"""
Schema-agnostic box-score extraction.

The upstream payload nests the real team totals at an unpredictable depth and
repeats partial figures elsewhere, so extraction collects every object that
looks like a team stat line and keeps the most plausible one per team.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ...models.game import BoxScoreLine, ConferenceInfo, GameRecord, PlayerGameLine, TeamRef
from ..normalize import build_player_id, normalize_team_id, split_full_name
from ..tree_walk import best_by_key, find_first, get_path, walk
from .scoreboard import conference_code

logger = logging.getLogger(__name__)

# Synonym keys per field, consulted in priority order.
STAT_ALIASES: Dict[str, Tuple[str, ...]] = {
    "points": ("points", "pts", "score"),
    "fgm": ("fieldGoalsMade", "fgm", "fgMade"),
    "fga": ("fieldGoalsAttempted", "fga", "fgAttempts"),
    "tpm": ("threePointsMade", "3pm", "threePointersMade", "threePtMade"),
    "tpa": ("threePointsAttempted", "3pa", "threePointersAttempted", "threePtAttempts"),
    "ftm": ("freeThrowsMade", "ftm", "ftMade"),
    "fta": ("freeThrowsAttempted", "fta", "ftAttempts"),
    "orb": ("offensiveRebounds", "oreb", "offReb", "orb"),
    "drb": ("defensiveRebounds", "dreb", "defReb", "drb"),
    "trb": ("totalRebounds", "treb", "rebounds", "reb", "trb"),
    "ast": ("assists", "ast"),
    "stl": ("steals", "stl"),
    "blk": ("blockedShots", "blocks", "blk"),
    "tov": ("turnovers", "tov", "to"),
    "pf": ("fouls", "pf", "personalFouls"),
    "minutes": ("minutesPlayed", "minutes", "min", "mins"),
}

# An object must carry one of these to be considered a team stat line.
PRESENCE_FIELDS = ("points", "fga", "fta")

TEAM_ID_KEYS = ("teamId", "team_id", "id")
NESTED_STAT_KEYS = ("teamStats", "team_stats", "statistics", "stats", "totals")
TEAM_META_PATHS = (("teams",), ("game", "teams"), ("meta", "teams"), ("header", "teams"))
TEAM_NAME_KEYS = ("nameShort", "name_short", "shortName", "nameFull", "name_full", "fullName", "name")
HOME_FLAG_KEYS = ("isHome", "home", "is_home", "homeAway", "home_away")

PLAYER_ID_KEYS = ("id", "ncaaId", "playerId")
PLAYER_NUMBER_KEYS = ("number", "jerseyNumber", "jersey", "uniform")
PLAYER_POSITION_KEYS = ("position", "pos")
PLAYER_YEAR_KEYS = ("year", "class", "classYear")

# Steals and blocks are rarely present in partial fragments, so they dominate
# the plausibility score.
CANDIDATE_WEIGHTS: Dict[str, float] = {
    "points": 1.0,
    "fga": 1.0,
    "fta": 1.0,
    "orb": 1.0,
    "tov": 1.0,
    "trb": 10.0,
    "ast": 10.0,
    "stl": 100.0,
    "blk": 100.0,
}


def pick(obj: Any, keys: Sequence[str]) -> Any:
    """First non-null value among ``keys``."""
    if not isinstance(obj, dict):
        return None
    for key in keys:
        value = obj.get(key)
        if value is not None:
            return value
    return None


def to_int(value: Any) -> int:
    """Coerce to a non-negative int; anything unparseable becomes 0."""
    if value is None or isinstance(value, bool):
        return int(bool(value))
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return max(0, int(number))


def to_float(value: Any) -> float:
    """Coerce minutes (``34``, ``"34.5"``, ``"MM:SS"``) to a non-negative float."""
    if value is None or isinstance(value, bool):
        return 0.0
    text = str(value).strip()
    try:
        if ":" in text:
            mins, secs = text.split(":", 1)
            number = float(mins or 0) + float(secs or 0) / 60.0
        else:
            number = float(text)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return max(0.0, number)


def has_stat_fields(obj: Any) -> bool:
    return isinstance(obj, dict) and any(
        pick(obj, STAT_ALIASES[name]) is not None for name in PRESENCE_FIELDS
    )


def line_from_stats(raw: Dict[str, Any]) -> BoxScoreLine:
    values = {
        name: to_int(pick(raw, aliases))
        for name, aliases in STAT_ALIASES.items()
        if name not in ("minutes", "drb")
    }
    if pick(raw, STAT_ALIASES["trb"]) is None:
        values["trb"] = values["orb"] + to_int(pick(raw, STAT_ALIASES["drb"]))
    return BoxScoreLine(minutes=to_float(pick(raw, STAT_ALIASES["minutes"])), **values)


def candidate_score(line: BoxScoreLine) -> float:
    return sum(getattr(line, name) * weight for name, weight in CANDIDATE_WEIGHTS.items())


def team_id_of(obj: Any) -> Optional[str]:
    value = pick(obj, TEAM_ID_KEYS)
    if value is None:
        return None
    tid = normalize_team_id(value)
    return tid or None


def collect_team_stat_candidates(payload: Any) -> List[Tuple[str, BoxScoreLine]]:
    """Every ``(team_id, line)`` pair anywhere in ``payload``, in document order.

    An object with a team identifier contributes itself when it carries
    points/attempts fields, plus each nested stat container that does.
    """
    out: List[Tuple[str, BoxScoreLine]] = []
    for node in walk(payload):
        if not isinstance(node, dict):
            continue
        tid = team_id_of(node)
        if tid is None:
            continue
        if has_stat_fields(node):
            out.append((tid, line_from_stats(node)))
        nested = pick(node, NESTED_STAT_KEYS)
        if has_stat_fields(nested):
            out.append((tid, line_from_stats(nested)))
    return out


def _team_entries(items: Iterable[Any]) -> List[Dict[str, Any]]:
    return [t for t in items if isinstance(t, dict) and team_id_of(t) is not None]


def find_team_meta(payload: Any) -> Optional[List[Dict[str, Any]]]:
    """Locate the home/away team metadata list (two or more team objects)."""
    for path in TEAM_META_PATHS:
        items = get_path(payload, *path)
        if isinstance(items, list):
            entries = _team_entries(items)
            if len(entries) >= 2:
                return entries

    found = find_first(
        payload,
        lambda node: isinstance(node, list) and len(_team_entries(node)) >= 2,
    )
    return _team_entries(found) if found is not None else None


def home_flag(meta: Dict[str, Any]) -> Optional[bool]:
    value = pick(meta, HOME_FLAG_KEYS)
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("home", "h", "true"):
            return True
        if text in ("away", "a", "false"):
            return False
    return None


def split_home_away(entries: List[Dict[str, Any]]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    flags = [home_flag(t) for t in entries]
    home = next((t for t, f in zip(entries, flags) if f is True), entries[0])
    away = next((t for t, f in zip(entries, flags) if f is False), None)
    if away is None or away is home:
        away = next(t for t in entries if t is not home)
    return home, away


def team_name(meta: Dict[str, Any]) -> str:
    value = pick(meta, TEAM_NAME_KEYS)
    if isinstance(value, dict):
        value = pick(value, ("short", "full", "char6"))
    return str(value) if value is not None else "Team"


def extract_player_groups(payload: Any) -> List[Tuple[str, List[Dict[str, Any]]]]:
    """``(team_id, raw player rows)`` pairs; the first group per team wins."""
    groups: List[Tuple[str, List[Dict[str, Any]]]] = []
    seen = set()

    def _add(node: Any) -> None:
        if not isinstance(node, dict):
            return
        rows = node.get("playerStats")
        tid = team_id_of(node)
        if tid and isinstance(rows, list) and rows and tid not in seen:
            seen.add(tid)
            groups.append((tid, [r for r in rows if isinstance(r, dict)]))

    structured = payload.get("teamBoxscore") if isinstance(payload, dict) else None
    if isinstance(structured, list):
        for entry in structured:
            _add(entry)
    if groups:
        return groups

    for node in walk(payload):
        _add(node)
    return groups


def player_line(team_id: str, raw: Dict[str, Any]) -> PlayerGameLine:
    first = str(pick(raw, ("firstName", "first_name")) or "").strip()
    last = str(pick(raw, ("lastName", "last_name")) or "").strip()
    if not first and not last:
        first, last = split_full_name(pick(raw, ("name", "fullName", "displayName")) or "")
    upstream_id = pick(raw, PLAYER_ID_KEYS)
    starter = raw.get("starter")
    return PlayerGameLine(
        team_id=team_id,
        player_id=build_player_id(team_id, upstream_id, first, last),
        upstream_id=str(upstream_id) if upstream_id is not None else "",
        first_name=first,
        last_name=last,
        number=str(pick(raw, PLAYER_NUMBER_KEYS) or ""),
        position=str(pick(raw, PLAYER_POSITION_KEYS) or ""),
        year=str(pick(raw, PLAYER_YEAR_KEYS) or ""),
        starter=starter is True or starter == 1 or str(starter).lower() == "true",
        box=line_from_stats(raw),
    )


class BoxScoreExtractor:
    """Turns one raw box-score payload into a GameRecord, or None."""

    def extract(
        self,
        game_id: str,
        payload: Any,
        game_date: str = "",
        conference_info: Optional[ConferenceInfo] = None,
    ) -> Optional[GameRecord]:
        if not isinstance(payload, (dict, list)):
            logger.warning("Game %s: payload is not JSON object/array", game_id)
            return None

        entries = find_team_meta(payload)
        if not entries:
            logger.warning("Game %s: no team metadata found", game_id)
            return None
        home_meta, away_meta = split_home_away(entries)
        home_id, away_id = team_id_of(home_meta), team_id_of(away_meta)
        if home_id == away_id:
            logger.warning("Game %s: home and away resolve to the same team %s", game_id, home_id)
            return None

        best = best_by_key(
            collect_team_stat_candidates(payload),
            key_fn=lambda c: c[0],
            score_fn=lambda c: candidate_score(c[1]),
        )
        if home_id not in best or away_id not in best:
            logger.warning(
                "Game %s: missing team stats (home %s: %s, away %s: %s)",
                game_id,
                home_id,
                home_id in best,
                away_id,
                away_id in best,
            )
            return None

        info = conference_info or ConferenceInfo()
        home = TeamRef(
            team_id=home_id,
            name=team_name(home_meta),
            conference=info.home_conference or conference_code(home_meta),
        )
        away = TeamRef(
            team_id=away_id,
            name=team_name(away_meta),
            conference=info.away_conference or conference_code(away_meta),
        )

        players: List[PlayerGameLine] = []
        for tid, rows in extract_player_groups(payload):
            if tid not in (home_id, away_id):
                continue
            players.extend(player_line(tid, row) for row in rows)

        return GameRecord(
            game_id=str(game_id),
            date=game_date,
            home_team=home,
            away_team=away,
            home_box=best[home_id][1],
            away_box=best[away_id][1],
            player_lines=tuple(players),
            conference_info=ConferenceInfo(home.conference, away.conference),
        )
