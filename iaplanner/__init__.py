"""Deadline planning engine for IB internal assessments."""

__version__ = "0.1.0"
