import os
from pathlib import Path

APP_DIR_NAME = "Menu Item Editor"

# backend/ when running from a source checkout
BACKEND_DIR = Path(__file__).parent.parent


def user_data_dir() -> Path:
    """Per-user data directory, overridable with MENU_EDITOR_HOME."""
    override = os.getenv("MENU_EDITOR_HOME")
    if override:
        return Path(override)
    base = os.getenv("LOCALAPPDATA") or os.getenv("XDG_DATA_HOME") or os.path.expanduser("~")
    return Path(base) / APP_DIR_NAME


def get_writable_dir(sub_dir: str = "") -> Path:
    """Create and return sub_dir next to the sources, or in the user data dir when that is read-only."""
    target_dir = BACKEND_DIR / sub_dir
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        writable = os.access(target_dir, os.W_OK)
    except OSError:
        writable = False
    if writable:
        return target_dir

    target_dir = user_data_dir() / sub_dir
    target_dir.mkdir(parents=True, exist_ok=True)
    return target_dir
