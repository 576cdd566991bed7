"""
Logger Utility Module

Provides global logging functionality, outputting all logs to file instead of console.
The terminal belongs to the TUI, and in askpass stub mode stdout is the secret channel,
so nothing may ever be printed there.
"""

import datetime
from backend.infra.config import Config


class Logger:
    """
    Simple Logger Class

    Appends to Config.LOG_PATH, only when Config.DEBUG is on.
    Never pass secret material to it.
    """

    @staticmethod
    def log(message: str) -> None:
        """
        Log a normal message

        Format: {timestamp} - {message}
        """
        if not Config.DEBUG:
            return
        try:
            with open(Config.LOG_PATH, 'a', encoding='utf-8') as f:
                f.write(f"{datetime.datetime.now()} - {message}\n")
        except OSError:
            # If logging fails, we can't do much but ignore
            pass

    @staticmethod
    def info(message: str) -> None:
        """Log info message (alias for log)"""
        Logger.log(message)

    @staticmethod
    def error(message: str) -> None:
        """
        Log error message

        Adds "ERROR: " prefix for easy filtering.

        Example:
            >>> Logger.error("[Relay] accept failed")
        """
        Logger.log(f"ERROR: {message}")

    @staticmethod
    def warning(message: str) -> None:
        """Log warning message"""
        Logger.log(f"WARNING: {message}")

    @staticmethod
    def debug(message: str) -> None:
        """
        Log debug message

        Adds "DEBUG: " prefix.
        """
        Logger.log(f"DEBUG: {message}")
