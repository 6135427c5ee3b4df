"""
FastAPI Pydantic models
"""

# Shared/base models
from .shared_models import (
    BaseResponse,
    HealthResponse,
)

# Menu items
from .menu_item_models import (
    OpenMenuItemRequest,
    MenuItemUpdateRequest,
    SlotFlagsRequest,
    ExportRequest,
    MenuItemState,
    SlotChoice,
    SlotChoicesResponse,
    MenuListResponse,
    ExportResponse,
)

__all__ = [
    'BaseResponse',
    'HealthResponse',
    'OpenMenuItemRequest',
    'MenuItemUpdateRequest',
    'SlotFlagsRequest',
    'ExportRequest',
    'MenuItemState',
    'SlotChoice',
    'SlotChoicesResponse',
    'MenuListResponse',
    'ExportResponse',
]
