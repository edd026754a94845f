"""Upstream fetching, normalization and season aggregation."""
