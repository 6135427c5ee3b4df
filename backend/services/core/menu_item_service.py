"""Menu item editing session: loading, editing and exporting one item at a time."""
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from loguru import logger

from gamedata.slot_labels import SlotLabelProvider
from gamedata.slots import (
    Slot, SlotCatalog, body_slot_name, is_item_slot, is_wear_slot, parse_slot
)
from parsers.menu import MenuItem, MenuParser


class NoItemOpenError(Exception):
    """Raised when an operation needs an open item and none is open."""
    pass


class DirectoryMenuSource:
    """Reads menu files from a list of directories, first match wins."""

    def __init__(self, search_paths: Iterable[Union[str, Path]]):
        self.search_paths = [Path(p) for p in search_paths]

    def find(self, file_name: str) -> Optional[Path]:
        """Locate a menu file; names are matched case-insensitively."""
        name = Path(file_name).name
        wanted = name.lower()
        for directory in self.search_paths:
            candidate = directory / name
            if candidate.is_file():
                return candidate
            if not directory.is_dir():
                continue
            for entry in directory.iterdir():
                if entry.name.lower() == wanted and entry.is_file():
                    return entry
        return None

    def read_bytes(self, file_name: str) -> bytes:
        """Return the full contents of a menu file."""
        path = self.find(file_name)
        if path is None:
            raise FileNotFoundError(f"Menu file not found: {file_name}")
        return path.read_bytes()

    def list_menus(self) -> List[str]:
        """All .menu file names, without duplicates, in search order."""
        seen = set()
        names = []
        for directory in self.search_paths:
            if not directory.is_dir():
                continue
            for entry in sorted(directory.glob('*.menu')):
                key = entry.name.lower()
                if key not in seen:
                    seen.add(key)
                    names.append(entry.name)
        return names


class MenuItemEditor:
    """Editing session for a single menu item."""

    def __init__(self, source: DirectoryMenuSource,
                 catalog: Optional[SlotCatalog] = None,
                 labels: Optional[SlotLabelProvider] = None,
                 export_path: Union[str, Path] = "exports",
                 show_body_slots: bool = False):
        self.source = source
        self.catalog = catalog or SlotCatalog()
        self.labels = labels or SlotLabelProvider()
        self.export_path = Path(export_path)
        self.show_body_slots = show_body_slots
        self._current: Optional[MenuItem] = None

    @classmethod
    def from_settings(cls, settings) -> 'MenuItemEditor':
        """Build an editor from EditorSettings."""
        catalog = SlotCatalog.from_json(settings.default_items_path)
        labels = SlotLabelProvider.from_json(settings.slot_labels_path)
        return cls(
            DirectoryMenuSource(settings.menu_search_paths),
            catalog=catalog,
            labels=labels,
            export_path=settings.export_path,
            show_body_slots=settings.show_body_slots,
        )

    @property
    def current(self) -> MenuItem:
        if self._current is None:
            raise NoItemOpenError("No menu item is open")
        return self._current

    @property
    def has_item(self) -> bool:
        return self._current is not None

    def open(self, file_name: str) -> MenuItem:
        """Load a menu item, replacing the one currently open."""
        data = self.source.read_bytes(file_name)
        path = self.source.find(file_name)
        parser = MenuParser(catalog=self.catalog)
        item = parser.parse_bytes(data, file_name=path.name if path else Path(file_name).name)
        for error in parser.recovery_errors:
            logger.warning(f"{file_name}: {error}")

        self._current = item
        logger.info(f"Opened menu item {item.file_name} ({item.name})")
        return item

    def close(self):
        if self._current is not None:
            logger.debug(f"Closed menu item {self._current.file_name}")
        self._current = None

    def update(self, name: Optional[str] = None, description: Optional[str] = None,
               category: Union[Slot, str, None] = None) -> MenuItem:
        """Change the text fields and/or category of the open item."""
        item = self.current
        if category is not None:
            item.category = parse_slot(category) if isinstance(category, str) else category
        if name is not None:
            item.name = name
        if description is not None:
            item.description = description
        return item

    def set_masked_slots(self, changes: Mapping[str, bool]) -> MenuItem:
        item = self.current
        for name, masked in changes.items():
            item.set_masked(name, masked)
        return item

    def set_undressed_slots(self, changes: Mapping[Union[Slot, str], bool]) -> MenuItem:
        item = self.current
        for slot, undressed in changes.items():
            item.set_undressed(slot, undressed)
        return item

    def is_shown_slot(self, slot: Slot) -> bool:
        return self.show_body_slots or is_wear_slot(slot)

    def category_choices(self) -> List[Slot]:
        return [slot for slot in Slot if is_item_slot(slot) and self.is_shown_slot(slot)]

    def undress_choices(self) -> List[Slot]:
        """Listed slots that have a default remove item"""
        undressable = set(self.catalog.undressable_slots())
        return [slot for slot in self.category_choices() if slot in undressable]

    def mask_choices(self) -> List[Tuple[Slot, str]]:
        """Slots that can be masked, with the name used in mask records."""
        choices = []
        for slot in Slot:
            if not is_item_slot(slot):
                continue
            name = body_slot_name(slot)
            if name is not None:
                choices.append((slot, name))
        return choices

    def label(self, slot: Slot) -> str:
        return self.labels.label(slot)

    def available_menus(self) -> List[str]:
        """Menu files in the search paths, without default remove items."""
        return [name for name in self.source.list_menus()
                if self.catalog.slot_for_filename(name) is None]

    def slot_state(self) -> Dict[str, object]:
        """Current category and mask/undress flags for every listed slot."""
        item = self.current
        return {
            'category': item.category,
            'masked': {name: item.is_masked(name) for _, name in self.mask_choices()},
            'undressed': {slot: item.is_undressed(slot) for slot in self.undress_choices()},
        }

    def export(self, file_name: Optional[str] = None) -> Path:
        """Write the open item to the export directory."""
        item = self.current
        if not self.export_path.exists():
            self.export_path.mkdir(parents=True)

        target = self.export_path / Path(file_name or item.file_name or "item.menu").name
        logger.debug(f"Exporting {target}...")
        item.write(str(target))
        return target
