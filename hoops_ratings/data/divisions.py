"""Per-division settings: upstream paths, season window, and plausibility floors."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, FrozenSet, Optional, Tuple

MENS_D1_CONFERENCES = frozenset(
    {
        "acc", "big-12", "big-ten", "sec", "pac-12", "big-east",
        "american", "aac", "wcc", "mwc", "mountain-west", "atlantic-10", "a-10",
        "mvc", "mac", "cusa", "sun-belt", "sunbelt", "colonial", "caa",
        "horizon", "maac", "ovc", "patriot", "southland", "summit-league",
        "wac", "big-sky", "big-south", "southern", "socon",
        "big-west", "ivy-league", "meac", "nec", "northeast", "swac",
        "asun", "america-east", "americaeast",
    }
)

WOMENS_D1_CONFERENCES = frozenset(
    {
        "acc", "american", "america-east", "asun", "atlantic-10",
        "big-12", "big-east", "big-sky", "big-south", "big-ten", "big-west",
        "caa", "cusa", "horizon", "ivy-league", "maac", "mac", "meac",
        "mountain-west", "mvc", "nec", "ovc", "patriot", "sec", "socon",
        "southland", "summit-league", "sun-belt", "swac", "wac", "wcc",
    }
)

MENS_D2_CONFERENCES = frozenset(
    {
        "cacc", "ciaa", "conference-carolinas", "ecc", "gliac", "glvc",
        "g-mac", "gac", "gulf-south", "lone-star", "mec",
        "ne10", "nsic", "peach-belt", "psac", "rmac",
        "sac", "siac", "sunshine-state",
        "mid-america-intercollegiate", "pacwest", "ccaa", "great-northwest",
        "dii-independent",
    }
)


@dataclass(frozen=True)
class DivisionProfile:
    """Everything the pipeline needs to know about one division's feed."""

    slug: str
    sport: str
    division: str
    season_start: str
    min_teams: int
    conferences: FrozenSet[str] = field(default_factory=frozenset)
    listings: Tuple[str, ...] = ("all-conf",)
    # Whether the conference filter applies unless the caller opts in.
    restrict_by_default: bool = False

    @property
    def file_prefix(self) -> str:
        return self.slug.replace("-", "_")

    @property
    def season_start_date(self) -> date:
        return date.fromisoformat(self.season_start)

    def conference_filter(self, restrict: Optional[bool] = None) -> Optional[FrozenSet[str]]:
        """Return the conference set to aggregate against, or None for no filter."""
        apply = self.restrict_by_default if restrict is None else restrict
        if not apply or not self.conferences:
            return None
        return self.conferences


DIVISIONS: Dict[str, DivisionProfile] = {
    "mens-d1": DivisionProfile(
        slug="mens-d1",
        sport="basketball-men",
        division="d1",
        season_start="2025-11-01",
        min_teams=300,
        conferences=MENS_D1_CONFERENCES,
    ),
    "womens-d1": DivisionProfile(
        slug="womens-d1",
        sport="basketball-women",
        division="d1",
        season_start="2025-11-01",
        min_teams=300,
        conferences=WOMENS_D1_CONFERENCES,
        listings=("all-conf", "all-games"),
        restrict_by_default=True,
    ),
    "mens-d2": DivisionProfile(
        slug="mens-d2",
        sport="basketball-men",
        division="d2",
        season_start="2025-11-14",
        min_teams=200,
        conferences=MENS_D2_CONFERENCES,
        restrict_by_default=True,
    ),
}


def get_division(slug: str) -> DivisionProfile:
    try:
        return DIVISIONS[slug]
    except KeyError:
        known = ", ".join(sorted(DIVISIONS))
        raise ValueError(f"Unknown division '{slug}' (expected one of: {known})") from None
