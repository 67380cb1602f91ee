"""Helpers shared by the test suites. Not installed with the service."""

from .clock import ManualClock

__all__ = ["ManualClock"]
