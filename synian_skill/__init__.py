"""Synian skill: voice-assistant gateway to Synian Core."""

__version__ = "1.0.0"
