"""Inkkeeper: reading-habit tracking with rewards, streaks and a companion."""

__version__ = "0.1.0"
