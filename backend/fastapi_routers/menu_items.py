"""
Menu item router - open, edit and export one menu item at a time
"""

from typing import Dict, Optional

from fastapi import APIRouter
from loguru import logger

from fastapi_core.editor_session import editor_lock
from fastapi_core.exceptions import (
    ExportException,
    InvalidMenuFileException,
    MaskPartException,
    MenuItemNotFoundException,
    UnknownSlotException,
)
from fastapi_models import (
    ExportRequest,
    ExportResponse,
    MenuItemState,
    MenuItemUpdateRequest,
    MenuListResponse,
    OpenMenuItemRequest,
    SlotChoice,
    SlotChoicesResponse,
    SlotFlagsRequest,
)
from fastapi_models.menu_item_models import SlotChoiceKind
from fastapi_routers.dependencies import CurrentItemDep, EditorDep
from gamedata.slots import BODY_SLOTS, UnknownSlotError, aggregate_for_part, parse_slot
from parsers.menu import MenuError, MenuItem
from services.core.menu_item_service import MenuItemEditor

router = APIRouter()

_MASK_NAMES = {name.lower(): name for name in BODY_SLOTS}


def _item_state(editor: MenuItemEditor, item: MenuItem) -> MenuItemState:
    category = item.category
    pending = item.pending_edits()
    return MenuItemState(
        file_name=item.file_name,
        name=item.name,
        description=item.description,
        category=category.name if category is not None else item.category_name or None,
        category_label=editor.label(category) if category is not None else None,
        category_unresolved=category is None,
        version=item.header.version,
        path=item.header.path,
        record_count=len(item.properties),
        masked_slots=dict(item.masked_slots),
        undressed_slots={slot.name: flag for slot, flag in item.undressed_slots.items()},
        pending_edits={
            'masked': pending['masked'],
            'undressed': {slot.name: flag for slot, flag in pending['undressed'].items()},
        },
    )


def _mask_name(item: MenuItem, name: str) -> str:
    """
    Canonical mask record name; names already on the item are kept as written.
    Aggregate sub-parts are only masked through their aggregate.
    """
    if name in item.masked_slots:
        return name
    canonical = _MASK_NAMES.get(name.strip().lower())
    if canonical is None:
        raise UnknownSlotException(name)
    aggregate = aggregate_for_part(canonical)
    if aggregate is not None:
        raise MaskPartException(canonical, aggregate)
    return canonical


@router.get("/menu-items/menus", response_model=MenuListResponse)
def list_menus(editor: EditorDep):
    """Menu files in the search paths, default remove items excluded"""
    menus = editor.available_menus()
    return MenuListResponse(menus=menus, count=len(menus))


@router.post("/menu-items/open", response_model=MenuItemState)
def open_menu_item(request: OpenMenuItemRequest, editor: EditorDep):
    """Open a menu file, replacing the current item"""
    with editor_lock():
        try:
            item = editor.open(request.file_name)
        except FileNotFoundError:
            raise MenuItemNotFoundException(request.file_name)
        except MenuError as e:
            raise InvalidMenuFileException(request.file_name, str(e))
        return _item_state(editor, item)


@router.get("/menu-items/current", response_model=MenuItemState)
def get_current(editor: EditorDep, item: CurrentItemDep):
    return _item_state(editor, item)


@router.patch("/menu-items/current", response_model=MenuItemState)
def update_current(request: MenuItemUpdateRequest, editor: EditorDep, item: CurrentItemDep):
    """Change name, description and/or category"""
    with editor_lock():
        try:
            editor.update(
                name=request.name,
                description=request.description,
                category=request.category,
            )
        except UnknownSlotError as e:
            raise UnknownSlotException(e.name)
        return _item_state(editor, item)


@router.put("/menu-items/current/masked", response_model=MenuItemState)
def set_masked(request: SlotFlagsRequest, editor: EditorDep, item: CurrentItemDep):
    with editor_lock():
        changes: Dict[str, bool] = {
            _mask_name(item, name): flag for name, flag in request.slots.items()
        }
        editor.set_masked_slots(changes)
        return _item_state(editor, item)


@router.put("/menu-items/current/undressed", response_model=MenuItemState)
def set_undressed(request: SlotFlagsRequest, editor: EditorDep, item: CurrentItemDep):
    with editor_lock():
        try:
            changes = {parse_slot(name): flag for name, flag in request.slots.items()}
        except UnknownSlotError as e:
            raise UnknownSlotException(e.name)
        editor.set_undressed_slots(changes)
        return _item_state(editor, item)


@router.post("/menu-items/current/export", response_model=ExportResponse)
def export_current(editor: EditorDep, item: CurrentItemDep,
                   request: Optional[ExportRequest] = None):
    """Write the open item, with its edits, to the export directory"""
    file_name = request.file_name if request is not None else None
    with editor_lock():
        try:
            target = editor.export(file_name)
        except OSError as e:
            logger.error(f"Export of {item.file_name} failed: {e}")
            raise ExportException(file_name or item.file_name or "", str(e))

    logger.info(f"Exported {item.file_name} to {target}")
    return ExportResponse(
        message=f"Exported {target.name}",
        path=str(target),
        size=target.stat().st_size,
    )


@router.delete("/menu-items/current")
def close_current(editor: EditorDep):
    with editor_lock():
        had_item = editor.has_item
        editor.close()
    return {"success": True, "closed": had_item}


@router.get("/menu-items/slots/{kind}", response_model=SlotChoicesResponse)
def get_slot_choices(kind: SlotChoiceKind, editor: EditorDep):
    """Slots offered for the category picker, the mask list or the undress list"""
    if kind == 'mask':
        choices = [
            SlotChoice(slot=slot.name, label=editor.label(slot), mask_name=name)
            for slot, name in editor.mask_choices()
        ]
    else:
        slots = editor.category_choices() if kind == 'category' else editor.undress_choices()
        choices = [
            SlotChoice(
                slot=slot.name,
                label=editor.label(slot),
                default_item=editor.catalog.default_filename(slot),
            )
            for slot in slots
        ]
    return SlotChoicesResponse(kind=kind, slots=choices)
