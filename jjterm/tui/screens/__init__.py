"""
TUI Screens Package
"""

from .log import LogScreen

__all__ = ["LogScreen"]
