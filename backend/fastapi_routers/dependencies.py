"""
FastAPI dependencies for the menu item editor
"""

from typing import Annotated

from fastapi import Depends

from fastapi_core.editor_session import get_editor_session
from fastapi_core.exceptions import NoMenuItemOpenException
from parsers.menu import MenuItem
from services.core.menu_item_service import MenuItemEditor, NoItemOpenError


def get_editor() -> MenuItemEditor:
    """Shared editor session"""
    return get_editor_session()


def get_current_item(editor: Annotated[MenuItemEditor, Depends(get_editor)]) -> MenuItem:
    """
    The open menu item

    Raises:
        NoMenuItemOpenException: If nothing has been opened yet
    """
    try:
        return editor.current
    except NoItemOpenError as e:
        raise NoMenuItemOpenException(str(e))


EditorDep = Annotated[MenuItemEditor, Depends(get_editor)]
CurrentItemDep = Annotated[MenuItem, Depends(get_current_item)]
