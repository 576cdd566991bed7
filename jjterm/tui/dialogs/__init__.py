"""
Dialogs package for TUI
"""
from .password import DialogPassword

__all__ = [
    "DialogPassword",
]
