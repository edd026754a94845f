"""Upstream API client, schedule scanner and box-score extractor."""

from .boxscore import BoxScoreExtractor
from .ncaa_api import (
    FatalUpstreamError,
    NCAAApiClient,
    RetryPolicy,
    TransientUpstreamError,
    UpstreamError,
)
from .scoreboard import ScanResult, ScheduleScanner, extract_game_ids, find_missing_games

__all__ = [
    "BoxScoreExtractor",
    "FatalUpstreamError",
    "NCAAApiClient",
    "RetryPolicy",
    "ScanResult",
    "ScheduleScanner",
    "TransientUpstreamError",
    "UpstreamError",
    "extract_game_ids",
    "find_missing_games",
]
