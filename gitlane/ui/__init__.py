"""Textual front end."""

from .app import GitlaneApp, TextualRenderer

__all__ = ["GitlaneApp", "TextualRenderer"]
