"""
Individual advanced stats, including Dean Oliver's offensive rating.

All rates are computed from season totals of the player and the player's
team. Every denominator goes through ``safe_div`` so a degenerate team or
player line degrades one number to 0 instead of producing NaN/inf; the
offensive rating itself is ``None`` when it cannot be estimated.
"""

from __future__ import annotations

import dataclasses
import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional

from ...models.season import PlayerSeasonTotals, TeamSeasonTotals
from .efficiency import FREE_THROW_POSSESSION_WEIGHT, defensive_possessions, safe_div

logger = logging.getLogger(__name__)

USAGE_FTA_WEIGHT = 0.44
# Dean Oliver's free-throw possession weight.
FT_POSS_WEIGHT = 0.4


@dataclass(frozen=True)
class TeamOffenseContext:
    """Team-level inputs shared by every player on a roster."""

    team_minutes: float
    team_orb: float
    orb_pct: float
    scoring_poss: float
    play_pct: float
    orb_weight: float

    @property
    def scoring_poss_discount(self) -> float:
        """Share of scoring possessions not credited to offensive rebounds."""
        return 1.0 - safe_div(self.team_orb, self.scoring_poss) * self.orb_weight * self.play_pct


def team_offense_context(team: TeamSeasonTotals) -> TeamOffenseContext:
    orb_pct = safe_div(team.orb, team.orb + team.opp_drb)
    ft_make_share = 1.0 - (1.0 - safe_div(team.ftm, team.fta)) ** 2
    scoring_poss = team.fgm + ft_make_share * team.fta * FT_POSS_WEIGHT
    play_pct = safe_div(scoring_poss, team.fga + team.fta * FT_POSS_WEIGHT + team.tov)
    orb_weight = safe_div(
        (1 - orb_pct) * play_pct,
        (1 - orb_pct) * play_pct + orb_pct * (1 - play_pct),
    )
    return TeamOffenseContext(
        team_minutes=team.team_minutes,
        team_orb=float(team.orb),
        orb_pct=orb_pct,
        scoring_poss=scoring_poss,
        play_pct=play_pct,
        orb_weight=orb_weight,
    )


def offensive_rating(player: PlayerSeasonTotals, team: TeamSeasonTotals) -> Optional[float]:
    """Points produced per 100 possessions used; None when not estimable."""
    p, t = player, team
    if p.fga <= 0 and p.fta <= 0:
        return None

    ctx = team_offense_context(t)
    five_man_minutes = ctx.team_minutes / 5.0
    minute_share = safe_div(p.minutes, five_man_minutes)

    q_ast = minute_share * (1.14 * safe_div(t.ast - p.ast, t.fgm)) + safe_div(
        safe_div(t.ast, ctx.team_minutes) * p.minutes * 5 - p.ast,
        safe_div(t.fgm, ctx.team_minutes) * p.minutes * 5 - p.fgm,
    ) * (1 - minute_share)

    fg_points_share = safe_div(p.points - p.ftm, 2 * p.fga)
    assist_points_share = safe_div((t.points - t.ftm) - (p.points - p.ftm), 2 * (t.fga - p.fga))
    ft_miss_share = (1 - safe_div(p.ftm, p.fta)) ** 2 if p.fta > 0 else 0.0
    ft_make_share = 1 - ft_miss_share if p.fta > 0 else 0.0
    orb_credit = p.orb * ctx.orb_weight * ctx.play_pct
    discount = ctx.scoring_poss_discount

    fg_part = p.fgm * (1 - 0.5 * fg_points_share * q_ast)
    ast_part = 0.5 * assist_points_share * p.ast
    ft_part = ft_make_share * FT_POSS_WEIGHT * p.fta
    scoring_poss = (fg_part + ast_part + ft_part) * discount + orb_credit

    missed_fg_poss = (p.fga - p.fgm) * (1 - 1.07 * ctx.orb_pct)
    missed_ft_poss = ft_miss_share * FT_POSS_WEIGHT * p.fta
    total_poss = scoring_poss + missed_fg_poss + missed_ft_poss + p.tov

    pprod_fg = 2 * (p.fgm + 0.5 * p.tpm) * (1 - 0.5 * fg_points_share * q_ast)
    teammate_fg_value = safe_div(t.fgm - p.fgm + 0.5 * (t.tpm - p.tpm), t.fgm - p.fgm)
    pprod_ast = 2 * teammate_fg_value * 0.5 * assist_points_share * p.ast
    pprod_orb = orb_credit * safe_div(t.points, ctx.scoring_poss)
    points_produced = (pprod_fg + pprod_ast + p.ftm) * discount + pprod_orb

    if total_poss <= 0:
        return None
    rating = 100.0 * points_produced / total_poss
    return rating if math.isfinite(rating) else None


@dataclass(frozen=True)
class PlayerRatingsRow:
    player_id: str
    team_id: str
    team_name: str
    first_name: str
    last_name: str
    number: str
    position: str
    year: str
    games: int
    starts: int
    minutes: float
    min_pct: float
    ortg: Optional[float]
    usage_pct: float
    shot_pct: float
    efg: float
    ts: float
    orb_pct: float
    drb_pct: float
    ast_rate: float
    to_rate: float
    blk_pct: float
    stl_pct: float
    fouls_per_40: float
    ft_rate: float
    ft_pct: float
    two_pct: float
    three_pct: float
    ppg: float
    rpg: float
    apg: float

    def to_dict(self) -> Dict:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> "PlayerRatingsRow":
        known = {f.name for f in dataclasses.fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


def player_advanced_stats(player: PlayerSeasonTotals, team: TeamSeasonTotals) -> PlayerRatingsRow:
    p, t = player, team
    team_minutes = t.team_minutes
    five_man_minutes = team_minutes / 5.0

    team_poss_used = t.fga + USAGE_FTA_WEIGHT * t.fta + t.tov
    player_poss_used = p.fga + USAGE_FTA_WEIGHT * p.fta + p.tov
    usage = 100 * safe_div(player_poss_used, safe_div(team_poss_used, team_minutes) * p.minutes) / 5

    opp_two_pa = t.opp_fga - t.opp_tpa
    opp_poss = defensive_possessions(t)
    per_minute = safe_div(five_man_minutes, p.minutes)

    return PlayerRatingsRow(
        player_id=p.player_id,
        team_id=p.team_id,
        team_name=p.team_name or t.team_name,
        first_name=p.first_name,
        last_name=p.last_name,
        number=p.number,
        position=p.position,
        year=p.year,
        games=p.games,
        starts=p.starts,
        minutes=p.minutes,
        min_pct=100 * 5 * safe_div(p.minutes, team_minutes),
        ortg=offensive_rating(p, t),
        usage_pct=usage,
        shot_pct=100 * safe_div(p.fga, t.fga),
        efg=100 * safe_div(p.fgm + 0.5 * p.tpm, p.fga),
        ts=100 * safe_div(p.points, 2 * (p.fga + FREE_THROW_POSSESSION_WEIGHT * p.fta)),
        orb_pct=100 * p.orb * per_minute * safe_div(1.0, t.orb + t.opp_drb),
        drb_pct=100 * p.drb * per_minute * safe_div(1.0, t.drb + t.opp_orb),
        ast_rate=100 * _assist_rate(p, t, five_man_minutes),
        to_rate=100 * safe_div(p.tov, player_poss_used),
        blk_pct=100 * safe_div(p.blk * five_man_minutes, p.minutes * opp_two_pa),
        stl_pct=100 * safe_div(p.stl * five_man_minutes, p.minutes * opp_poss),
        fouls_per_40=40 * safe_div(p.pf, p.minutes),
        ft_rate=100 * safe_div(p.fta, p.fga),
        ft_pct=100 * safe_div(p.ftm, p.fta),
        two_pct=100 * safe_div(p.fgm - p.tpm, p.fga - p.tpa),
        three_pct=100 * safe_div(p.tpm, p.tpa),
        ppg=safe_div(p.points, p.games),
        rpg=safe_div(p.trb, p.games),
        apg=safe_div(p.ast, p.games),
    )


def _assist_rate(p: PlayerSeasonTotals, t: TeamSeasonTotals, five_man_minutes: float) -> float:
    teammate_fgm = safe_div(p.minutes, five_man_minutes) * t.fgm - p.fgm
    return safe_div(p.ast, teammate_fgm) if teammate_fgm > 0 else 0.0


def compute_player_ratings(
    players: Iterable[PlayerSeasonTotals],
    teams: Mapping[str, TeamSeasonTotals],
) -> List[PlayerRatingsRow]:
    """Advanced stats for every player whose team has season totals."""
    rows: List[PlayerRatingsRow] = []
    orphans = 0
    for player in players:
        team = teams.get(player.team_id)
        if team is None:
            orphans += 1
            continue
        rows.append(player_advanced_stats(player, team))
    if orphans:
        logger.debug("Skipped %d players without team totals", orphans)
    rows.sort(key=lambda r: (r.team_id, -r.minutes, r.player_id))
    return rows
