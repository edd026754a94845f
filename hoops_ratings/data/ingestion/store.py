"""
Season persistence backends.

Both backends share one contract:

- ``load_state()`` returns the persisted SeasonState (empty when nothing is stored)
- ``commit(snapshot, replace=False)`` writes totals, the games log, derived
  ratings and the game-ID cache together; either everything lands or the
  prior state stays in place
- ``load_ratings()`` returns the persisted RatingsRows, best first

Teams and players are upserted by key, games are insert-or-ignore on
``game_id``, and the ratings collections are fully overwritten.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
import sqlite3
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence

from ...models.game import GameRecord
from ...models.season import GameIdCache, PlayerSeasonTotals, TeamSeasonTotals
from ..features.efficiency import RatingsRow
from ..features.player_ratings import PlayerRatingsRow
from .aggregator import SeasonState

logger = logging.getLogger(__name__)


class StoreError(RuntimeError):
    """A commit could not be completed; prior persisted state is unchanged."""


@dataclass
class SeasonSnapshot:
    """Everything one successful run hands to persistence."""

    division: str
    state: SeasonState
    ratings: List[RatingsRow] = field(default_factory=list)
    player_ratings: List[PlayerRatingsRow] = field(default_factory=list)
    new_games: List[GameRecord] = field(default_factory=list)
    season_start: Optional[str] = None


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SeasonStore:
    """Base class for persistence backends."""

    def load_state(self) -> SeasonState:
        raise NotImplementedError

    def load_ratings(self) -> List[RatingsRow]:
        raise NotImplementedError

    def commit(self, snapshot: SeasonSnapshot, replace: bool = False) -> None:
        raise NotImplementedError


class JsonFileStore(SeasonStore):
    """Flat JSON artifacts under ``output_dir``, one file per collection."""

    COLLECTIONS = ("team_stats", "player_stats", "games", "ratings", "player_ratings", "games_cache")

    def __init__(self, output_dir: str, prefix: str):
        self.output_dir = Path(output_dir)
        self.prefix = prefix

    def path(self, collection: str) -> Path:
        return self.output_dir / f"{self.prefix}_{collection}.json"

    def _load(self, collection: str) -> Optional[Dict[str, Any]]:
        p = self.path(collection)
        if not p.exists():
            return None
        try:
            with open(p, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable %s: %s", p, exc)
            return None
        return data if isinstance(data, dict) else None

    def load_state(self) -> SeasonState:
        teams_payload = self._load("team_stats") or {}
        players_payload = self._load("player_stats") or {}
        cache_payload = self._load("games_cache") or {}

        teams = {}
        for row in teams_payload.get("teams", []):
            if isinstance(row, dict) and row.get("team_id") is not None:
                record = TeamSeasonTotals.from_dict(row)
                teams[record.team_id] = record
        players = {}
        for row in players_payload.get("players", []):
            if isinstance(row, dict) and row.get("player_id") is not None:
                record = PlayerSeasonTotals.from_dict(row)
                players[record.player_id] = record
        return SeasonState(teams=teams, players=players, game_ids=GameIdCache.from_dict(cache_payload))

    def load_ratings(self) -> List[RatingsRow]:
        payload = self._load("ratings") or {}
        return [RatingsRow.from_dict(r) for r in payload.get("rows", []) if isinstance(r, dict)]

    def load_player_ratings(self) -> List[PlayerRatingsRow]:
        payload = self._load("player_ratings") or {}
        return [PlayerRatingsRow.from_dict(r) for r in payload.get("players", []) if isinstance(r, dict)]

    def load_games(self) -> List[Dict[str, Any]]:
        payload = self._load("games") or {}
        return [g for g in payload.get("games", []) if isinstance(g, dict)]

    def _payloads(self, snapshot: SeasonSnapshot, replace: bool) -> Dict[str, Dict[str, Any]]:
        stamp = _utc_now()
        state = snapshot.state

        games = [] if replace else self.load_games()
        known = {str(g.get("game_id")) for g in games}
        for game in snapshot.new_games:
            if game.game_id not in known:
                known.add(game.game_id)
                games.append(game.to_log_entry(snapshot.division))

        cache = state.game_ids.to_dict()
        cache["generated_at_utc"] = stamp
        return {
            "team_stats": {
                "generated_at_utc": stamp,
                "division": snapshot.division,
                "teams": [t.to_dict() for t in sorted(state.teams.values(), key=lambda t: t.team_id)],
            },
            "player_stats": {
                "generated_at_utc": stamp,
                "division": snapshot.division,
                "players": [p.to_dict() for p in sorted(state.players.values(), key=lambda p: p.player_id)],
            },
            "games": {"generated_at_utc": stamp, "division": snapshot.division, "games": games},
            "ratings": {
                "generated_at_utc": stamp,
                "season_start": snapshot.season_start,
                "rows": [r.to_dict() for r in snapshot.ratings],
            },
            "player_ratings": {
                "generated_at_utc": stamp,
                "players": [r.to_dict() for r in snapshot.player_ratings],
            },
            "games_cache": cache,
        }

    def commit(self, snapshot: SeasonSnapshot, replace: bool = False) -> None:
        """Stage every file next to its target, then rename them all into place."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        staged: List[tuple] = []
        try:
            for collection, payload in self._payloads(snapshot, replace).items():
                fd, tmp = tempfile.mkstemp(
                    prefix=f".{self.prefix}_{collection}.", suffix=".tmp", dir=self.output_dir
                )
                staged.append((tmp, self.path(collection)))
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(payload, f, indent=2)
        except (OSError, TypeError, ValueError) as exc:
            for tmp, _ in staged:
                if os.path.exists(tmp):
                    os.unlink(tmp)
            raise StoreError(f"Could not stage {self.prefix} files: {exc}") from exc

        for tmp, target in staged:
            os.replace(tmp, target)
        logger.info("Wrote %d %s collections to %s", len(staged), self.prefix, self.output_dir)


_SQL_TYPES = {"int": "INTEGER", "float": "REAL", "Optional[float]": "REAL", "bool": "INTEGER"}


def _columns(cls) -> List[tuple]:
    return [(f.name, _SQL_TYPES.get(str(f.type), "TEXT")) for f in dataclasses.fields(cls)]


class SQLiteStore(SeasonStore):
    """Relational store with one row set per division; each commit is one transaction."""

    TABLES = {
        "teams": (TeamSeasonTotals, ("team_id",)),
        "players": (PlayerSeasonTotals, ("player_id",)),
        "ratings": (RatingsRow, ("team_id",)),
        "player_ratings": (PlayerRatingsRow, ("player_id",)),
    }

    def __init__(self, db_path: str, division: str):
        self.db_path = str(db_path)
        self.division = division
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._memory_conn = sqlite3.connect(":memory:") if self.db_path == ":memory:" else None
        with self._transaction() as conn:
            self._init_schema(conn)

    def _connect(self) -> sqlite3.Connection:
        if self._memory_conn is not None:
            return self._memory_conn
        conn = sqlite3.connect(self.db_path, timeout=30.0)
        conn.execute("PRAGMA busy_timeout = 30000")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            if conn is not self._memory_conn:
                conn.close()

    def _init_schema(self, conn: sqlite3.Connection) -> None:
        for table, (cls, key) in self.TABLES.items():
            cols = ", ".join(f"{name} {sql_type}" for name, sql_type in _columns(cls))
            pk = ", ".join(("division",) + key)
            conn.execute(
                f"CREATE TABLE IF NOT EXISTS {table} (division TEXT NOT NULL, {cols}, PRIMARY KEY ({pk}))"
            )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS games (
                division TEXT NOT NULL,
                game_id TEXT NOT NULL,
                date TEXT,
                home_id TEXT,
                away_id TEXT,
                home_score INTEGER,
                away_score INTEGER,
                is_conference_game INTEGER,
                payload TEXT NOT NULL,
                PRIMARY KEY (division, game_id)
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS game_ids (
                division TEXT NOT NULL,
                game_id TEXT NOT NULL,
                processed_at_utc TEXT,
                PRIMARY KEY (division, game_id)
            )
            """
        )

    def _rows(self, conn: sqlite3.Connection, table: str, order_by: str) -> List[Dict[str, Any]]:
        cur = conn.execute(f"SELECT * FROM {table} WHERE division = ? ORDER BY {order_by}", (self.division,))
        out = []
        for row in cur.fetchall():
            record = dict(row)
            record.pop("division", None)
            out.append(record)
        return out

    def load_state(self) -> SeasonState:
        with self._transaction() as conn:
            teams = {
                r["team_id"]: TeamSeasonTotals.from_dict(r) for r in self._rows(conn, "teams", "team_id")
            }
            players = {
                r["player_id"]: PlayerSeasonTotals.from_dict(r) for r in self._rows(conn, "players", "player_id")
            }
            cur = conn.execute(
                "SELECT game_id FROM game_ids WHERE division = ? ORDER BY rowid", (self.division,)
            )
            game_ids = GameIdCache(row["game_id"] for row in cur.fetchall())
        return SeasonState(teams=teams, players=players, game_ids=game_ids)

    def load_ratings(self) -> List[RatingsRow]:
        with self._transaction() as conn:
            return [RatingsRow.from_dict(r) for r in self._rows(conn, "ratings", "rank")]

    def load_player_ratings(self) -> List[PlayerRatingsRow]:
        with self._transaction() as conn:
            return [PlayerRatingsRow.from_dict(r) for r in self._rows(conn, "player_ratings", "team_id, player_id")]

    def load_games(self) -> List[Dict[str, Any]]:
        """Per-game log entries for this division, in insertion order."""
        with self._transaction() as conn:
            cur = conn.execute(
                "SELECT payload FROM games WHERE division = ? ORDER BY rowid", (self.division,)
            )
            return [json.loads(row["payload"]) for row in cur.fetchall()]

    def _upsert(self, conn: sqlite3.Connection, table: str, records: Sequence[Any]) -> None:
        cls, key = self.TABLES[table]
        names = [name for name, _ in _columns(cls)]
        cols = ["division"] + names
        updates = ", ".join(f"{n} = excluded.{n}" for n in names if n not in key)
        sql = (
            f"INSERT INTO {table} ({', '.join(cols)}) VALUES ({', '.join('?' for _ in cols)}) "
            f"ON CONFLICT(division, {', '.join(key)}) DO UPDATE SET {updates}"
        )
        conn.executemany(
            sql, [[self.division] + [getattr(rec, n) for n in names] for rec in records]
        )

    def _overwrite(self, conn: sqlite3.Connection, table: str, records: Sequence[Any]) -> None:
        conn.execute(f"DELETE FROM {table} WHERE division = ?", (self.division,))
        self._upsert(conn, table, records)

    def commit(self, snapshot: SeasonSnapshot, replace: bool = False) -> None:
        stamp = _utc_now()
        state = snapshot.state
        try:
            with self._transaction() as conn:
                if replace:
                    for table in ("teams", "players", "games", "game_ids"):
                        conn.execute(f"DELETE FROM {table} WHERE division = ?", (self.division,))
                self._upsert(conn, "teams", list(state.teams.values()))
                self._upsert(conn, "players", list(state.players.values()))
                conn.executemany(
                    "INSERT OR IGNORE INTO games (game_id, division, date, home_id, away_id, "
                    "home_score, away_score, is_conference_game, payload) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    [
                        (
                            g.game_id,
                            self.division,
                            g.date,
                            g.home_team.team_id,
                            g.away_team.team_id,
                            g.home_box.points,
                            g.away_box.points,
                            int(g.is_conference_game),
                            json.dumps(g.to_log_entry(self.division)),
                        )
                        for g in snapshot.new_games
                    ],
                )
                self._overwrite(conn, "ratings", snapshot.ratings)
                self._overwrite(conn, "player_ratings", snapshot.player_ratings)
                conn.executemany(
                    "INSERT OR IGNORE INTO game_ids (division, game_id, processed_at_utc) VALUES (?, ?, ?)",
                    [(self.division, gid, stamp) for gid in state.game_ids],
                )
        except sqlite3.Error as exc:
            raise StoreError(f"SQLite commit failed for {self.division}: {exc}") from exc
        logger.info(
            "Committed %s: %d teams, %d players, %d new games",
            self.division,
            len(state.teams),
            len(state.players),
            len(snapshot.new_games),
        )
