"""
Global Configuration Management

jjterm configuration: settings file, path layout and environment overrides.
Nothing is loaded at import time; call Config.initialize() from the primary
process only (the askpass stub must stay free of configuration work).
"""

import os
import json
import shlex
import subprocess
from typing import Dict, Any


class ConfigError(Exception):
    """Raised when the settings file cannot be parsed."""
    pass


class Config:
    """
    Global Configuration Class
    """
    APP_NAME = "jjterm"

    # Config directory (overridable via JJTERM_CONFIG_DIR)
    CONFIG_DIR = os.path.join(os.path.expanduser("~"), ".config", APP_NAME)
    _settings_path = os.path.join(CONFIG_DIR, "config.json")

    _data: Dict[str, Any] = {}

    # Path configuration
    LOG_DIR = os.path.join(os.path.expanduser("~"), ".cache", APP_NAME)

    # Log File Path
    LOG_PATH = os.path.join(LOG_DIR, "debug.log")

    # File logging switch (DEBUG env var)
    DEBUG = False

    # SSH / askpass
    HIJACK_ASKPASS = True
    ASKPASS_PROGRAM = ""

    # UI
    AUTO_REFRESH_INTERVAL = 0
    DEFAULT_REVSET = ""
    LIMIT = 0

    DEFAULT_SETTINGS: Dict[str, Any] = {
        "ssh": {
            "hijack_askpass": True,
            "askpass_program": "",
        },
        "ui": {
            "auto_refresh_interval": 0,
        },
        "revisions": {
            "revset": "",
        },
        "limit": 0,
    }

    @classmethod
    def settings_path(cls) -> str:
        return cls._settings_path

    @classmethod
    def load_settings(cls):
        """Load config.json (a missing file means defaults)"""
        cls._data = {}
        if os.path.exists(cls._settings_path):
            try:
                with open(cls._settings_path, 'r', encoding='utf-8') as f:
                    cls._data = json.load(f)
            except (json.JSONDecodeError, OSError) as e:
                raise ConfigError(f"Error loading {cls._settings_path}: {e}") from e

            if not isinstance(cls._data, dict):
                raise ConfigError(f"Error loading {cls._settings_path}: top level must be an object")

        ssh = cls._data.get("ssh", {})
        cls.HIJACK_ASKPASS = bool(ssh.get("hijack_askpass", True))
        cls.ASKPASS_PROGRAM = ssh.get("askpass_program", "") or ""

        ui = cls._data.get("ui", {})
        cls.AUTO_REFRESH_INTERVAL = int(ui.get("auto_refresh_interval", 0) or 0)

        cls.DEFAULT_REVSET = cls._data.get("revisions", {}).get("revset", "") or ""
        cls.LIMIT = int(cls._data.get("limit", 0) or 0)

    @classmethod
    def initialize(cls):
        """Initialize configuration"""
        cls._apply_env_overrides()
        cls.load_settings()
        cls.ensure_dirs()

    @classmethod
    def _apply_env_overrides(cls):
        """Environment variable overrides"""
        config_dir = os.environ.get("JJTERM_CONFIG_DIR")
        if config_dir:
            cls.CONFIG_DIR = config_dir
            cls._settings_path = os.path.join(config_dir, "config.json")

        cls.DEBUG = bool(os.environ.get("DEBUG"))

    @classmethod
    def ensure_dirs(cls):
        if cls.DEBUG and not os.path.exists(cls.LOG_DIR):
            os.makedirs(cls.LOG_DIR, exist_ok=True)

    @classmethod
    def save_defaults(cls):
        """Write the default settings file if none exists yet."""
        if os.path.exists(cls._settings_path):
            return
        os.makedirs(os.path.dirname(cls._settings_path), exist_ok=True)
        with open(cls._settings_path, 'w', encoding='utf-8') as f:
            json.dump(cls.DEFAULT_SETTINGS, f, indent=2)

    @classmethod
    def edit(cls) -> int:
        """
        Open the settings file in $EDITOR.
        Returns the editor's exit code.
        """
        cls._apply_env_overrides()
        try:
            cls.save_defaults()
        except OSError as e:
            print(f"[Config] Error creating {cls._settings_path}: {e}")
            return 1

        editor = os.environ.get("EDITOR") or "vi"
        try:
            return subprocess.call(shlex.split(editor) + [cls._settings_path])
        except OSError as e:
            print(f"[Config] Error starting editor '{editor}': {e}")
            return 1
