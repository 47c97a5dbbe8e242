"""
Utility functions for WWW Player.
"""

from .formatting import format_time, format_percent, parse_bool, parse_seconds

__all__ = ['format_time', 'format_percent', 'parse_bool', 'parse_seconds']
