"""Persisted visit log."""

from .visits import VisitLogStore, VisitRecord

__all__ = ["VisitLogStore", "VisitRecord"]
