"""Recency ranking of refs and commits."""

from .ranker import RankedEntry, rank, rank_entries

__all__ = ["RankedEntry", "rank", "rank_entries"]
