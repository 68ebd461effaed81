"""Deduplication, scoring and ranking of signals."""
