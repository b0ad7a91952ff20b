"""
Plain JSON application settings.

Settings are not secret and are stored unencrypted beside the vault. Keys
are written in PascalCase so files from earlier releases load unchanged.
"""

import os
import json
import logging
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

from . import config
from .utils import atomic_write_text


def _pascal_case(name: str) -> str:
    return "".join(part.capitalize() for part in name.split("_"))


@dataclass
class AppSettings:
    """Operational configuration used by the UI and automation layers."""
    hotkey: str = config.DEFAULT_HOTKEY
    hotkey_enabled: bool = True
    start_with_windows: bool = False
    show_notifications: bool = True
    otp_validity_seconds: int = config.TOTP_PERIOD
    otp_input_delay_ms: int = 2000
    auto_input_otp: bool = True
    privacy_mode_enabled: bool = True
    hide_names: bool = False
    hide_usernames: bool = False
    hide_passwords: bool = True
    hide_secret_keys: bool = True
    ro_game_path: str = config.DEFAULT_GAME_PATH
    game_startup_arguments: str = config.DEFAULT_GAME_ARGUMENTS
    game_titles: List[str] = field(default_factory=list)
    character_selection_delay_ms: int = 50
    server_selection_delay_ms: int = 50
    keyboard_input_delay_ms: int = 100
    mouse_click_delay_ms: int = 200
    step_delay_ms: int = 500
    window_focus_delay_ms: int = 300
    window_ready_timeout_ms: int = 5000
    window_ready_check_interval_ms: int = 300
    window_focus_retries: int = 3
    minimize_to_tray: bool = False
    window_width: float = 800
    window_height: float = 600
    window_left: float = -1
    window_top: float = -1
    window_maximized: bool = False
    extra: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    def effective_game_titles(self) -> List[str]:
        """Configured window titles, or the defaults when none are set."""
        return list(self.game_titles) if self.game_titles else list(config.DEFAULT_GAME_TITLES)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        for f in fields(self):
            if f.name != "extra":
                data[_pascal_case(f.name)] = getattr(self, f.name)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AppSettings':
        if not isinstance(data, dict):
            raise ValueError("Settings must be a JSON object")
        kwargs = {}
        known = set()
        for f in fields(cls):
            if f.name == "extra":
                continue
            key = _pascal_case(f.name)
            known.add(key)
            if key in data and data[key] is not None:
                kwargs[f.name] = data[key]
        settings = cls(**kwargs)
        settings.extra = {k: v for k, v in data.items() if k not in known}
        return settings


class SettingsStore:
    """Loads and saves AppSettings as JSON."""

    def __init__(self, filepath: str, logger: Optional[logging.Logger] = None):
        self.filepath = filepath
        self.logger = logger or logging.getLogger(__name__)

    def load(self) -> AppSettings:
        """Return stored settings, or defaults if the file is missing or unreadable."""
        if not os.path.exists(self.filepath):
            return AppSettings()
        try:
            with open(self.filepath, 'r', encoding='utf-8') as f:
                return AppSettings.from_dict(json.load(f))
        except (OSError, ValueError, TypeError) as e:
            self.logger.error(f"Error loading settings from {self.filepath}: {e}")
            return AppSettings()

    def save(self, settings: AppSettings) -> None:
        """
        Write settings to disk.

        Raises:
            IOFailure: If the file cannot be written
        """
        text = json.dumps(settings.to_dict(), indent=2, ensure_ascii=False)
        atomic_write_text(self.filepath, text)
