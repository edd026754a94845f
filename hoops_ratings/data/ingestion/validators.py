"""Plausibility checks applied to a run's output before it is committed."""

from __future__ import annotations

import math
from typing import List, Sequence

from ..features.efficiency import RatingsRow


class RunGuardError(ValueError):
    """Raised when a run's output looks like a systemic upstream failure."""


def validate_team_count(rows: Sequence[RatingsRow], min_teams: int) -> List[str]:
    unique = {row.team_id for row in rows}
    if len(unique) < min_teams:
        return [f"only {len(unique)} teams found (expected {min_teams}+)"]
    return []


def validate_ratings_rows(rows: Sequence[RatingsRow]) -> List[str]:
    errors: List[str] = []
    for idx, row in enumerate(rows):
        if not row.team_id:
            errors.append(f"rows[{idx}] missing team_id")
        for field in ("adj_o", "adj_d", "adj_em", "adj_t"):
            value = getattr(row, field)
            if not isinstance(value, (int, float)) or not math.isfinite(value):
                errors.append(f"rows[{idx}] ({row.team_id}) has non-finite '{field}'")
        if row.games < 0 or row.wins + row.losses != row.games:
            errors.append(f"rows[{idx}] ({row.team_id}) record {row.wins}-{row.losses} != {row.games} games")
    return errors


class RunGuard:
    """Rejects a run whose ratings are too sparse or malformed to replace prior output."""

    def __init__(self, min_teams: int):
        self.min_teams = int(min_teams)

    def errors(self, rows: Sequence[RatingsRow]) -> List[str]:
        return validate_team_count(rows, self.min_teams) + validate_ratings_rows(rows)

    def check(self, rows: Sequence[RatingsRow]) -> None:
        errors = self.errors(rows)
        if errors:
            raise RunGuardError("BAD RUN: " + "; ".join(errors[:5]))
