"""Automatic broadcast-style camera direction for iRacing replays."""

__version__ = "0.1.0"
