"""Team efficiency ratings, four factors and individual advanced stats."""

from .efficiency import compute_ratings, estimate_possessions, factor_report, four_factors, RatingsRow
from .player_ratings import compute_player_ratings, offensive_rating, PlayerRatingsRow

__all__ = [
    "PlayerRatingsRow",
    "RatingsRow",
    "compute_player_ratings",
    "compute_ratings",
    "estimate_possessions",
    "factor_report",
    "four_factors",
    "offensive_rating",
]
