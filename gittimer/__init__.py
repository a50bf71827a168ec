"""Automatic Jira and Productive time tracking driven by git activity."""

__version__ = "0.1.0"
