"""Freshness monitoring for topic feeds."""

from src.freshness.monitor import FreshnessMonitor


__all__ = ["FreshnessMonitor"]
