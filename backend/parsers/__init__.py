"""
Menu file parsers
"""

from .menu import (
    MenuParser, MenuWriter, MenuItem, MenuHeader, MenuProperty, PropertyTable,
    PropertyKey, MenuError, FormatError, MenuCorruptedError,
    MENU_HEADER, NAME_SPACE_PLACEHOLDER, decode, encode
)

__all__ = [
    # Codec
    'MenuParser', 'MenuWriter', 'decode', 'encode',

    # Model
    'MenuItem', 'MenuHeader', 'MenuProperty', 'PropertyTable', 'PropertyKey',
    'MENU_HEADER', 'NAME_SPACE_PLACEHOLDER',

    # Errors
    'MenuError', 'FormatError', 'MenuCorruptedError',
]
