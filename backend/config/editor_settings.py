"""
Menu Item Editor Configuration

Where menu files are read from and exported to, and which slot tables the
editor uses. Values are taken from (in order):
1. Environment variables (a .env file is loaded first).
2. A 'settings.json' file in the writable app directory.
3. Built-in defaults.
"""
import os
import json
from pathlib import Path
from typing import Any, List, Optional

from dotenv import load_dotenv
from loguru import logger

from gamedata import DEFAULT_ITEMS_PATH, SLOT_LABELS_PATH
from utils.paths import get_writable_dir

# Load environment variables
load_dotenv()

DEFAULT_EXPORT_PATH = Path("exports")


def get_user_settings_path() -> Path:
    return get_writable_dir("") / "settings.json"


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


class EditorSettings:
    """
    Centralized editor settings.

    Environment variables:
    - MENU_EXPORT_PATH: directory exported items are written to
    - MENU_SHOW_BODY_SLOTS: list body slots next to clothing slots
    - MENU_SEARCH_PATHS: os.pathsep separated directories menus are read from
    - MENU_DEFAULT_ITEMS: JSON table of default remove items per slot
    - MENU_SLOT_LABELS: JSON table of slot display labels
    """

    def __init__(self, settings_path: Optional[Path] = None):
        self._settings_path = Path(settings_path) if settings_path else None
        self._export_path: Path = DEFAULT_EXPORT_PATH
        self._show_body_slots = False
        self._menu_search_paths: List[Path] = []
        self._default_items_path: Path = DEFAULT_ITEMS_PATH
        self._slot_labels_path: Path = SLOT_LABELS_PATH
        self._load_config()

    @property
    def settings_path(self) -> Path:
        if self._settings_path is None:
            self._settings_path = get_user_settings_path()
        return self._settings_path

    def _load_config(self):
        """Load configuration from the settings file, then the environment."""
        settings_path = self.settings_path
        if settings_path.exists():
            try:
                with open(settings_path, 'r', encoding='utf-8') as f:
                    settings = json.load(f)

                if settings.get('export_path'):
                    self._export_path = Path(settings['export_path'])
                if 'show_body_slots' in settings:
                    self._show_body_slots = _parse_bool(settings['show_body_slots'])
                for folder in settings.get('menu_search_paths', []):
                    self._menu_search_paths.append(Path(folder))
                if settings.get('default_items_path'):
                    self._default_items_path = Path(settings['default_items_path'])
                if settings.get('slot_labels_path'):
                    self._slot_labels_path = Path(settings['slot_labels_path'])
            except (json.JSONDecodeError, OSError) as e:
                logger.warning(f"Ignoring unreadable settings file {settings_path}: {e}")

        env_export = os.getenv('MENU_EXPORT_PATH')
        if env_export:
            self._export_path = Path(env_export)

        env_body_slots = os.getenv('MENU_SHOW_BODY_SLOTS')
        if env_body_slots is not None:
            self._show_body_slots = _parse_bool(env_body_slots)

        env_search = os.getenv('MENU_SEARCH_PATHS')
        if env_search:
            self._menu_search_paths = [Path(p) for p in env_search.split(os.pathsep) if p]

        env_default_items = os.getenv('MENU_DEFAULT_ITEMS')
        if env_default_items:
            self._default_items_path = Path(env_default_items)

        env_labels = os.getenv('MENU_SLOT_LABELS')
        if env_labels:
            self._slot_labels_path = Path(env_labels)

    @property
    def export_path(self) -> Path:
        return self._export_path

    @property
    def show_body_slots(self) -> bool:
        return self._show_body_slots

    @property
    def menu_search_paths(self) -> List[Path]:
        return list(self._menu_search_paths)

    @property
    def default_items_path(self) -> Path:
        return self._default_items_path

    @property
    def slot_labels_path(self) -> Path:
        return self._slot_labels_path

    def _save_settings(self) -> bool:
        """Save current settings to file"""
        settings = {
            'export_path': str(self._export_path),
            'show_body_slots': self._show_body_slots,
            'menu_search_paths': [str(p) for p in self._menu_search_paths],
            'default_items_path': str(self._default_items_path),
            'slot_labels_path': str(self._slot_labels_path),
        }

        try:
            self.settings_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.settings_path, 'w', encoding='utf-8') as f:
                json.dump(settings, f, indent=2)
            return True
        except OSError as e:
            logger.error(f"Failed to save settings to {self.settings_path}: {e}")
            return False

    def set_export_path(self, path: str) -> bool:
        """Update the export path and save it to user settings."""
        self._export_path = Path(path)
        return self._save_settings()

    def set_show_body_slots(self, show: bool) -> bool:
        self._show_body_slots = bool(show)
        return self._save_settings()

    def add_menu_search_path(self, path: str) -> bool:
        """Add a directory menus are read from"""
        path_obj = Path(path)
        if not path_obj.is_dir():
            return False

        if path_obj not in self._menu_search_paths:
            self._menu_search_paths.append(path_obj)
            return self._save_settings()
        return True

    def remove_menu_search_path(self, path: str) -> bool:
        path_obj = Path(path)
        if path_obj in self._menu_search_paths:
            self._menu_search_paths.remove(path_obj)
            return self._save_settings()
        return False

