"""Sector cyclical Z-score analytics service."""

__version__ = "1.0.0"
