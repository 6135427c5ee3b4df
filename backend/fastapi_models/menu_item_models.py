"""
Menu item models
Requests and responses for opening, editing and exporting menu items
"""

from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field

from .shared_models import BaseResponse


SlotChoiceKind = Literal['category', 'mask', 'undress']


class OpenMenuItemRequest(BaseModel):
    """Open a menu file from the search paths"""
    file_name: str = Field(..., min_length=1, description="Menu file name, e.g. dress001.menu")


class MenuItemUpdateRequest(BaseModel):
    """Text fields and category; omitted fields are left unchanged"""
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = Field(None, description="Slot name, e.g. wear")


class SlotFlagsRequest(BaseModel):
    """Slot name -> flag. Only the listed slots change."""
    slots: Dict[str, bool] = Field(default_factory=dict)


class ExportRequest(BaseModel):
    file_name: Optional[str] = Field(None, description="Defaults to the opened file name")


class MenuItemState(BaseModel):
    """Everything the editor shows for the open item"""
    file_name: Optional[str] = None
    name: str
    description: str
    category: Optional[str] = None
    category_label: Optional[str] = None
    category_unresolved: bool = False
    version: int
    path: str
    record_count: int
    masked_slots: Dict[str, bool] = Field(default_factory=dict)
    undressed_slots: Dict[str, bool] = Field(default_factory=dict)
    pending_edits: Dict[str, Dict[str, bool]] = Field(default_factory=dict)


class SlotChoice(BaseModel):
    slot: str
    label: str
    mask_name: Optional[str] = None
    default_item: Optional[str] = None


class SlotChoicesResponse(BaseModel):
    kind: SlotChoiceKind
    slots: List[SlotChoice] = Field(default_factory=list)


class MenuListResponse(BaseModel):
    """Menu files that can be opened"""
    menus: List[str] = Field(default_factory=list)
    count: int = 0


class ExportResponse(BaseResponse):
    path: str
    size: int
