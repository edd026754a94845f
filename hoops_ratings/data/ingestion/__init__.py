"""Season aggregation, run guard, persistence and pipeline runs."""

from .aggregator import SeasonAggregator, SeasonState
from .pipeline import PipelineConfig, RatingsPipeline, RunReport
from .store import JsonFileStore, SeasonSnapshot, SQLiteStore, StoreError
from .validators import RunGuard, RunGuardError

__all__ = [
    "JsonFileStore",
    "PipelineConfig",
    "RatingsPipeline",
    "RunGuard",
    "RunGuardError",
    "RunReport",
    "SQLiteStore",
    "SeasonAggregator",
    "SeasonSnapshot",
    "SeasonState",
    "StoreError",
]
