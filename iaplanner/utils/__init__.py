"""Utility functions."""

from .config import load_config, get_default_config
from .datetime_utils import parse_date, date_range, start_of_week

__all__ = ['load_config', 'get_default_config', 'parse_date', 'date_range', 'start_of_week']
