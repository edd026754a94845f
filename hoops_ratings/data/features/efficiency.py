"""Raw per-possession team efficiency, four factors, and league rankings."""

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Sequence

import numpy as np

from ...models.season import TeamSeasonTotals

FREE_THROW_POSSESSION_WEIGHT = 0.475
RANK_TOLERANCE = 0.001

FACTOR_KEYS = ("efg", "tov", "orb", "ftr", "two", "three", "ft", "three_pa_rate", "blk", "stl", "ast")

# True when a higher value is better for the team being ranked.
OFFENSE_DIRECTIONS: Dict[str, bool] = {
    "efg": True,
    "tov": False,
    "orb": True,
    "ftr": True,
    "two": True,
    "three": True,
    "ft": True,
    "three_pa_rate": True,
    "blk": False,
    "stl": False,
    "ast": True,
}
DEFENSE_DIRECTIONS: Dict[str, bool] = {k: not v for k, v in OFFENSE_DIRECTIONS.items()}
FACTOR_DIRECTIONS = {"off": OFFENSE_DIRECTIONS, "def": DEFENSE_DIRECTIONS}


def safe_div(numerator: float, denominator: float, default: float = 0.0) -> float:
    if not denominator:
        return default
    value = numerator / denominator
    return value if math.isfinite(value) else default


def estimate_possessions(fga: float, orb: float, tov: float, fta: float) -> float:
    """``FGA - ORB + TOV + 0.475 * FTA``, floored at 1."""
    return max(1.0, fga - orb + tov + FREE_THROW_POSSESSION_WEIGHT * fta)


def offensive_possessions(t: TeamSeasonTotals) -> float:
    return estimate_possessions(t.fga, t.orb, t.tov, t.fta)


def defensive_possessions(t: TeamSeasonTotals) -> float:
    return estimate_possessions(t.opp_fga, t.opp_orb, t.opp_tov, t.opp_fta)


@dataclass(frozen=True)
class RatingsRow:
    team_id: str
    team_name: str
    conference: str
    games: int
    wins: int
    losses: int
    adj_o: float
    adj_d: float
    adj_em: float
    adj_t: float
    rank: int = 0

    def to_dict(self) -> Dict:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> "RatingsRow":
        known = {f.name for f in dataclasses.fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


def team_rating(t: TeamSeasonTotals) -> RatingsRow:
    off_poss = offensive_possessions(t)
    adj_o = t.points / off_poss * 100.0
    adj_d = t.opp_points / defensive_possessions(t) * 100.0
    return RatingsRow(
        team_id=t.team_id,
        team_name=t.team_name,
        conference=t.conference,
        games=t.games,
        wins=t.wins,
        losses=t.losses,
        adj_o=adj_o,
        adj_d=adj_d,
        adj_em=adj_o - adj_d,
        adj_t=off_poss / max(1, t.games),
    )


def compute_ratings(teams: Iterable[TeamSeasonTotals]) -> List[RatingsRow]:
    """Recompute every row from season totals, best AdjEM first."""
    rows = sorted((team_rating(t) for t in teams), key=lambda r: (-r.adj_em, r.team_id))
    return [dataclasses.replace(row, rank=i) for i, row in enumerate(rows, start=1)]


def four_factors(t: TeamSeasonTotals) -> Dict[str, Dict[str, float]]:
    """Offensive and defensive factors in percent; 0 wherever a denominator is 0."""
    poss = offensive_possessions(t)
    opp_poss = defensive_possessions(t)
    two_pa = t.fga - t.tpa
    opp_two_pa = t.opp_fga - t.opp_tpa
    return {
        "off": {
            "efg": 100 * safe_div(t.fgm + 0.5 * t.tpm, t.fga),
            "tov": 100 * safe_div(t.tov, poss),
            "orb": 100 * safe_div(t.orb, t.orb + t.opp_drb),
            "ftr": 100 * safe_div(t.fta, t.fga),
            "two": 100 * safe_div(t.fgm - t.tpm, two_pa),
            "three": 100 * safe_div(t.tpm, t.tpa),
            "ft": 100 * safe_div(t.ftm, t.fta),
            "three_pa_rate": 100 * safe_div(t.tpa, t.fga),
            "blk": 100 * safe_div(t.opp_blk, two_pa),
            "stl": 100 * safe_div(t.opp_stl, poss),
            "ast": 100 * safe_div(t.ast, t.fgm),
        },
        "def": {
            "efg": 100 * safe_div(t.opp_fgm + 0.5 * t.opp_tpm, t.opp_fga),
            "tov": 100 * safe_div(t.opp_tov, opp_poss),
            "orb": 100 * safe_div(t.opp_orb, t.opp_orb + t.drb),
            "ftr": 100 * safe_div(t.opp_fta, t.opp_fga),
            "two": 100 * safe_div(t.opp_fgm - t.opp_tpm, opp_two_pa),
            "three": 100 * safe_div(t.opp_tpm, t.opp_tpa),
            "ft": 100 * safe_div(t.opp_ftm, t.opp_fta),
            "three_pa_rate": 100 * safe_div(t.opp_tpa, t.opp_fga),
            "blk": 100 * safe_div(t.blk, opp_two_pa),
            "stl": 100 * safe_div(t.stl, opp_poss),
            "ast": 100 * safe_div(t.opp_ast, t.opp_fgm),
        },
    }


def _rank_against(
    queries: Sequence[float],
    values: Sequence[float],
    higher_is_better: bool,
    tolerance: float,
) -> List[int]:
    """Rank many values against one league with a single sort."""
    if len(values) == 0:
        return [0] * len(queries)
    sign = -1.0 if higher_is_better else 1.0
    keys = np.sort(sign * np.asarray(values, dtype=float))
    targets = sign * np.asarray(queries, dtype=float)
    idx = np.searchsorted(keys, targets - tolerance, side="right")
    nearest = keys[np.minimum(idx, len(keys) - 1)]
    hit = (idx < len(keys)) & (np.abs(nearest - targets) < tolerance)
    return [int(i) + 1 if ok else 0 for i, ok in zip(idx, hit)]


def rank_value(
    value: float,
    values: Sequence[float],
    higher_is_better: bool,
    tolerance: float = RANK_TOLERANCE,
) -> int:
    """1-based position of the first league value within ``tolerance`` of ``value``.

    Returns 0 when nothing matches (the value is not from this league).
    """
    return _rank_against([value], values, higher_is_better, tolerance)[0]


def rank_values(values: Sequence[float], higher_is_better: bool, tolerance: float = RANK_TOLERANCE) -> List[int]:
    return _rank_against(values, values, higher_is_better, tolerance)


def league_ranks(factors: Mapping[str, Dict[str, Dict[str, float]]]) -> Dict[str, Dict[str, Dict[str, int]]]:
    """Rank every team on every factor; ``factors`` maps team_id to four_factors()."""
    team_ids = list(factors)
    out: Dict[str, Dict[str, Dict[str, int]]] = {tid: {"off": {}, "def": {}} for tid in team_ids}
    for side, directions in FACTOR_DIRECTIONS.items():
        for key in FACTOR_KEYS:
            values = [factors[tid][side][key] for tid in team_ids]
            for tid, rank in zip(team_ids, rank_values(values, directions[key])):
                out[tid][side][key] = rank
    return out


def league_averages(factors: Mapping[str, Dict[str, Dict[str, float]]]) -> Dict[str, Dict[str, float]]:
    out: Dict[str, Dict[str, float]] = {"off": {}, "def": {}}
    for side in out:
        for key in FACTOR_KEYS:
            values = np.array([f[side][key] for f in factors.values()], dtype=float)
            out[side][key] = float(values.mean()) if values.size else 0.0
    return out


def rank_percentiles(ranks: Sequence[int], league_size: int) -> List[float]:
    """Map ranks to 0-100 percentiles where rank 1 is 100 and last place is 0."""
    arr = np.asarray(ranks, dtype=float)
    if league_size <= 1:
        return [100.0] * len(arr)
    pct = 100.0 * (league_size - arr) / (league_size - 1)
    return np.clip(pct, 0.0, 100.0).round(1).tolist()


def factor_report(teams: Iterable[TeamSeasonTotals]) -> Dict:
    """Factors, league ranks, percentiles and averages for a whole division."""
    factors = {t.team_id: four_factors(t) for t in teams}
    ranks = league_ranks(factors)
    size = len(factors)
    report: Dict = {"league_size": size, "averages": league_averages(factors), "teams": {}}
    for tid, team_factors in factors.items():
        entry = {"factors": team_factors, "ranks": ranks[tid], "percentiles": {}}
        for side in ("off", "def"):
            side_ranks = [ranks[tid][side][k] for k in FACTOR_KEYS]
            entry["percentiles"][side] = dict(zip(FACTOR_KEYS, rank_percentiles(side_ranks, size)))
        report["teams"][tid] = entry
    return report
