"""Box-score ingestion and raw efficiency ratings for college basketball."""

__version__ = "0.1.0"
