"""Lunamark: markdown files as a Kanban board."""

__version__ = "0.4.0"
