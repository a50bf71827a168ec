"""Utility modules for gittimer."""

from gittimer.utils.durations import format_elapsed, parse_duration

__all__ = ["format_elapsed", "parse_duration"]
