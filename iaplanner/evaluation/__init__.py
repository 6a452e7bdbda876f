"""Sample data generation."""

from .generator import StateGenerator

__all__ = ['StateGenerator']
