"""Primer - prime repositories for AI-assisted development."""

__version__ = "0.1.0"
