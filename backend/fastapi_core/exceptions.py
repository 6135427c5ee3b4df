"""
Custom exceptions for the menu item editor API.

Each exception carries the HTTP status code and message the global
handlers in fastapi_server turn into a JSON error response.
"""
from typing import Optional

from fastapi import status


class MenuEditorException(Exception):
    """Base exception for menu item editor errors"""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class MenuItemNotFoundException(MenuEditorException):
    """The requested menu file is not in any search path"""

    def __init__(self, file_name: str):
        super().__init__(f"Menu file '{file_name}' not found", status.HTTP_404_NOT_FOUND)
        self.file_name = file_name


class InvalidMenuFileException(MenuEditorException):
    """The menu file could not be decoded"""

    def __init__(self, file_name: str, reason: str):
        super().__init__(f"Invalid menu file '{file_name}': {reason}",
                         status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.file_name = file_name


class NoMenuItemOpenException(MenuEditorException):
    """An edit was requested while no item is open"""

    def __init__(self, message: str = "No menu item is open"):
        super().__init__(message, status.HTTP_409_CONFLICT)


class UnknownSlotException(MenuEditorException):
    def __init__(self, slot_name: Optional[str]):
        super().__init__(f"Unknown slot '{slot_name}'", status.HTTP_400_BAD_REQUEST)
        self.slot_name = slot_name


class ExportException(MenuEditorException):
    """Writing the menu item to disk failed"""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Failed to export '{path}': {reason}")
        self.path = path


class MaskPartException(UnknownSlotException):
    """A sub-part of an aggregate mask slot was named directly"""

    def __init__(self, slot_name: str, aggregate: str):
        super().__init__(slot_name)
        self.message = f"'{slot_name}' is masked through '{aggregate}'"
        self.aggregate = aggregate
