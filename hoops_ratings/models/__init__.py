"""Canonical game and season record types."""
