"""Realtime voice data entry for an expense, income and time-log tracker."""

__version__ = "0.1.0"
