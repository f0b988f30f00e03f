"""
CLI module for report version history.

Provides command-line tools for sanitizing HTML and maintaining stored history.
"""

from report_versioning.cli.history import main as history_main

__all__ = ["history_main"]
