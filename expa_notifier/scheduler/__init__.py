"""Scheduling of poll cycles."""

from .apsched_adapter import APSchedulerAdapter

__all__ = ["APSchedulerAdapter"]
