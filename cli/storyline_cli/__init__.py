"""Storyline CLI: command-line access to the story tree API."""

__version__ = "0.1.0"
