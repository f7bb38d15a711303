"""Pydantic models for store results."""

from .results import LoadResult

__all__ = ["LoadResult"]
