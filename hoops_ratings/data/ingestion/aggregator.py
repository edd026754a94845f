"""Incremental merge of parsed games into team/player season totals."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import AbstractSet, Dict, Iterable, List, Mapping, Optional

from ...models.game import GameRecord
from ...models.season import GameIdCache, PlayerSeasonTotals, TeamSeasonTotals

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeasonState:
    """Team/player season tables plus the cache of games folded into them.

    Treated as a value: aggregation returns a new state and never edits the
    records of the state it was given.
    """

    teams: Mapping[str, TeamSeasonTotals] = field(default_factory=dict)
    players: Mapping[str, PlayerSeasonTotals] = field(default_factory=dict)
    game_ids: GameIdCache = field(default_factory=GameIdCache)

    @classmethod
    def empty(cls) -> "SeasonState":
        return cls()


@dataclass
class MergeResult:
    state: SeasonState
    merged: List[GameRecord] = field(default_factory=list)
    skipped_cached: List[str] = field(default_factory=list)
    skipped_out_of_division: List[str] = field(default_factory=list)


class SeasonAggregator:
    """
    Folds GameRecords into season totals.

    With a ``division_conferences`` set, only teams whose conference belongs
    to it become season entities; their out-of-division opponents still count
    toward their games and opponent totals.
    """

    def __init__(self, division_conferences: Optional[AbstractSet[str]] = None):
        self.division_conferences = (
            frozenset(c.lower() for c in division_conferences) if division_conferences else None
        )

    def includes_team(self, conference: Optional[str]) -> bool:
        if self.division_conferences is None:
            return True
        return bool(conference) and conference.lower() in self.division_conferences

    def merge(self, state: SeasonState, game: GameRecord) -> SeasonState:
        return self.merge_all(state, [game]).state

    def merge_all(self, state: SeasonState, games: Iterable[GameRecord]) -> MergeResult:
        teams: Dict[str, TeamSeasonTotals] = dict(state.teams)
        players: Dict[str, PlayerSeasonTotals] = dict(state.players)
        touched_teams = set()
        touched_players = set()
        result = MergeResult(state=state)
        processed: List[str] = []
        seen = set(state.game_ids)

        def _team(team_id: str, name: str, conference: Optional[str]) -> TeamSeasonTotals:
            if team_id not in touched_teams:
                existing = teams.get(team_id)
                teams[team_id] = (
                    existing.copy()
                    if existing is not None
                    else TeamSeasonTotals(team_id=team_id, team_name=name, conference=conference or "")
                )
                touched_teams.add(team_id)
            record = teams[team_id]
            if not record.conference and conference:
                record.conference = conference
            if not record.team_name and name:
                record.team_name = name
            return record

        def _player(line, team_name: str) -> PlayerSeasonTotals:
            pid = line.player_id
            if pid not in touched_players:
                existing = players.get(pid)
                players[pid] = (
                    existing.copy()
                    if existing is not None
                    else PlayerSeasonTotals(
                        player_id=pid,
                        team_id=line.team_id,
                        team_name=team_name,
                        first_name=line.first_name,
                        last_name=line.last_name,
                        number=line.number,
                        position=line.position,
                        year=line.year,
                    )
                )
                touched_players.add(pid)
            return players[pid]

        for game in games:
            if game.game_id in seen:
                result.skipped_cached.append(game.game_id)
                continue
            seen.add(game.game_id)
            processed.append(game.game_id)

            included = [
                side for side in game.sides() if self.includes_team(side[0].conference)
            ]
            if not included:
                result.skipped_out_of_division.append(game.game_id)
                continue

            for team, line, _opp, opp_line in included:
                _team(team.team_id, team.name, team.conference).record_game(line, opp_line)
                for player in game.players_for(team.team_id):
                    if player.box.is_empty:
                        continue
                    _player(player, team.name).record_game(player)
            result.merged.append(game)

        result.state = SeasonState(
            teams=teams,
            players=players,
            game_ids=state.game_ids.with_ids(processed),
        )
        logger.info(
            "Merged %d games (%d cached, %d outside division)",
            len(result.merged),
            len(result.skipped_cached),
            len(result.skipped_out_of_division),
        )
        return result
