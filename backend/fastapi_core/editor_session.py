"""
Editor session holder.

The editor is modal: one MenuItemEditor serves every request and holds at
most one open item. It is created lazily from EditorSettings.
"""
import threading
from typing import Optional

from loguru import logger

from config.editor_settings import EditorSettings
from services.core.menu_item_service import MenuItemEditor

_editor: Optional[MenuItemEditor] = None
_editor_lock = threading.Lock()
_edit_lock = threading.RLock()


def get_editor_session() -> MenuItemEditor:
    """Return the shared editor, creating it on first use."""
    global _editor
    with _editor_lock:
        if _editor is None:
            settings = EditorSettings()
            _editor = MenuItemEditor.from_settings(settings)
            logger.info(f"Created editor session (search paths: {settings.menu_search_paths}, "
                        f"export path: {settings.export_path})")
        return _editor


def set_editor_session(editor: Optional[MenuItemEditor]):
    """Replace the shared editor; None drops it so the next request rebuilds it."""
    global _editor
    with _editor_lock:
        _editor = editor


def editor_lock():
    """Lock serializing edits to the shared editor"""
    return _edit_lock
