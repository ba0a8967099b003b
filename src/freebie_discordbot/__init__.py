"""Announce temporarily free games from Epic Games and Steam on Discord."""

__version__ = "0.1.0"
