"""Recurring bill, subscription and paycheck detection backend."""

__version__ = "0.1.0"
