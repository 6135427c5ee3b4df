"""
Menu file parser and writer
Handles .menu item descriptors: a fixed header followed by a free-form list of
key/value records. Unknown records are carried through untouched on write.
"""

import io
import os
import struct
from collections import ChainMap
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import BinaryIO, Callable, Dict, Iterator, List, Optional, Tuple, Union

from loguru import logger

from gamedata.slots import (
    MASK_AGGREGATES, Slot, SlotCatalog, UnknownSlotError, aggregate_for_part, mask_key,
    parse_slot
)


MENU_HEADER = "CM3D2_MENU"
DEFAULT_VERSION = 1000
END_KEY = "end"

# Spaces in the name record would split the value when the game tokenizes it
NAME_SPACE_PLACEHOLDER = "\u2008"


class MenuError(Exception):
    """Base exception for menu parsing errors"""
    pass


class FormatError(MenuError):
    """Raised when the file does not start with the menu header tag"""
    pass


class MenuCorruptedError(MenuError):
    """Raised when a menu file ends in the middle of a value"""
    pass


class PropertyKey(str, Enum):
    """Record keys the writer rewrites; everything else passes through"""
    NAME = "name"
    DESCRIPTION = "setumei"
    CATEGORY = "category"
    MASK_ITEM = "maskitem"
    ITEM = "アイテム"


@dataclass
class MenuProperty:
    """A single record: a key and its ordered values"""
    key: str
    values: List[str] = field(default_factory=list)

    @property
    def first_value(self) -> Optional[str]:
        return self.values[0] if self.values else None

    def copy(self) -> 'MenuProperty':
        return MenuProperty(self.key, list(self.values))


class PropertyTable:
    """Ordered record list. Keys repeat and order is kept on write."""

    def __init__(self, properties=None):
        self._properties: List[MenuProperty] = list(properties or [])

    @classmethod
    def from_pairs(cls, pairs) -> 'PropertyTable':
        """Build a table from (key, values) pairs"""
        return cls(MenuProperty(key, list(values)) for key, values in pairs)

    def __iter__(self) -> Iterator[MenuProperty]:
        return iter(self._properties)

    def __len__(self) -> int:
        return len(self._properties)

    def __getitem__(self, index: int) -> MenuProperty:
        return self._properties[index]

    def __eq__(self, other) -> bool:
        if not isinstance(other, PropertyTable):
            return NotImplemented
        return self._properties == other._properties

    def __repr__(self):
        return f"PropertyTable({len(self._properties)} records)"

    def append(self, prop: MenuProperty):
        self._properties.append(prop)

    def add(self, key: str, *values: str) -> MenuProperty:
        """Append a new record and return it"""
        prop = MenuProperty(key, list(values))
        self._properties.append(prop)
        return prop

    def insert(self, index: int, prop: MenuProperty):
        self._properties.insert(index, prop)

    def last_index(self, key: str) -> int:
        """Index of the last record with the key, -1 if there is none"""
        for index in range(len(self._properties) - 1, -1, -1):
            if self._properties[index].key == key:
                return index
        return -1

    def find(self, key: str) -> Optional[MenuProperty]:
        for prop in self._properties:
            if prop.key == key:
                return prop
        return None

    def find_all(self, key: str) -> List[MenuProperty]:
        return [prop for prop in self._properties if prop.key == key]

    def first_value(self, key: str) -> Optional[str]:
        """First value of the first record with a value for the key"""
        for prop in self._properties:
            if prop.key == key and prop.values:
                return prop.values[0]
        return None

    def has_value(self, key: str, value: str, ignore_case: bool = False) -> bool:
        """Whether some record with the key has the value as its first value"""
        wanted = value.lower() if ignore_case else value
        for prop in self._properties:
            if prop.key != key or not prop.values:
                continue
            current = prop.values[0].lower() if ignore_case else prop.values[0]
            if current == wanted:
                return True
        return False

    def keys(self) -> List[str]:
        return [prop.key for prop in self._properties]

    def copy(self) -> 'PropertyTable':
        return PropertyTable(prop.copy() for prop in self._properties)

    def to_list(self) -> List[Tuple[str, List[str]]]:
        return [(prop.key, list(prop.values)) for prop in self._properties]


@dataclass
class MenuHeader:
    """Fixed fields at the start of a menu file"""
    tag: str = MENU_HEADER
    version: int = DEFAULT_VERSION
    path: str = ""
    name: str = ""
    category: str = ""
    description: str = ""


class MenuItem:
    """
    An editable menu item.

    The masked/undressed views are read from the records once, into a
    read-only snapshot. Edits are kept in separate mappings on top of it and
    only reach the records when the item is written.
    """

    def __init__(self, header: Optional[MenuHeader] = None,
                 properties: Optional[PropertyTable] = None,
                 file_name: Optional[str] = None,
                 catalog: Optional[SlotCatalog] = None):
        self.header = header or MenuHeader()
        self.properties = properties if properties is not None else PropertyTable()
        self.file_name = file_name
        self.catalog = catalog or SlotCatalog()

        self.name = self.header.name
        self.description = self.header.description
        # Category string as last written, used to rename references to it
        self.category_name = self.header.category
        self.category_error: Optional[UnknownSlotError] = None
        self._category: Optional[Slot] = None

        masked, undressed = self._derive_views()
        self._category = self._resolve_category(self.category_name)
        # Category the records currently agree with; renames apply only when it differs
        self._baseline_category = self._category

        self._masked_snapshot = MappingProxyType(masked)
        self._undressed_snapshot = MappingProxyType(undressed)
        self._masked_edits: Dict[str, bool] = {}
        self._undressed_edits: Dict[Slot, bool] = {}
        self._masked_view = ChainMap(self._masked_edits, self._masked_snapshot)
        self._undressed_view = ChainMap(self._undressed_edits, self._undressed_snapshot)

    def __repr__(self):
        return (f"MenuItem(file_name={self.file_name!r}, name={self.name!r}, "
                f"category={self.category_name!r}, records={len(self.properties)})")

    @classmethod
    def from_bytes(cls, data: bytes, file_name: Optional[str] = None,
                   catalog: Optional[SlotCatalog] = None) -> 'MenuItem':
        return MenuParser(catalog=catalog).parse_bytes(data, file_name=file_name)

    def _derive_views(self) -> Tuple[Dict[str, bool], Dict[Slot, bool]]:
        masked: Dict[str, bool] = {}
        undressed: Dict[Slot, bool] = {}

        for prop in self.properties:
            value = prop.first_value
            if value is None:
                continue
            if prop.key == PropertyKey.NAME:
                self.name = value.replace(NAME_SPACE_PLACEHOLDER, ' ')
            elif prop.key == PropertyKey.DESCRIPTION:
                self.description = value
            elif prop.key == PropertyKey.CATEGORY:
                self.category_name = value
            elif prop.key == PropertyKey.MASK_ITEM:
                masked[mask_key(value)] = True
                aggregate = aggregate_for_part(value)
                if aggregate is not None:
                    masked[aggregate] = True
            elif prop.key == PropertyKey.ITEM:
                slot = self.catalog.slot_for_filename(value)
                if slot is not None:
                    undressed[slot] = True

        return masked, undressed

    def _resolve_category(self, name: str) -> Optional[Slot]:
        try:
            return parse_slot(name)
        except UnknownSlotError as e:
            logger.warning(f"{self.file_name or 'menu'}: {e}, category left unresolved")
            self.category_error = e
            return None

    @property
    def category(self) -> Optional[Slot]:
        return self._category

    @category.setter
    def category(self, value: Union[Slot, str, None]):
        if isinstance(value, str):
            value = parse_slot(value)
        self._category = value

    @property
    def category_changed(self) -> bool:
        """True when the next write renames the category"""
        return self._category is not None and self._category != self._baseline_category

    @property
    def new_category_name(self) -> str:
        """Category string the next write will emit"""
        if not self.category_changed:
            return self.category_name
        return self._category.name

    @property
    def masked_slots(self) -> ChainMap:
        """Masked body slots by name; assignments are kept as pending edits"""
        return self._masked_view

    @property
    def undressed_slots(self) -> ChainMap:
        """Undressed slots; assignments are kept as pending edits"""
        return self._undressed_view

    @property
    def loaded_masked_slots(self) -> MappingProxyType:
        return self._masked_snapshot

    def is_masked(self, name: str) -> bool:
        return bool(self.masked_state().get(mask_key(name), False))

    def is_undressed(self, slot: Union[Slot, str]) -> bool:
        if isinstance(slot, str):
            slot = parse_slot(slot)
        return bool(self._undressed_view.get(slot, False))

    def set_masked(self, name: str, masked: bool = True):
        self._masked_edits[mask_key(name)] = bool(masked)

    def set_undressed(self, slot: Union[Slot, str], undressed: bool = True):
        if isinstance(slot, str):
            slot = parse_slot(slot)
        self._undressed_edits[slot] = bool(undressed)

    def pending_edits(self) -> Dict[str, Dict]:
        """Edits that differ from what was loaded"""
        return {
            'masked': {k: v for k, v in self._masked_edits.items()
                       if self._masked_snapshot.get(k, False) != v},
            'undressed': {k: v for k, v in self._undressed_edits.items()
                          if self._undressed_snapshot.get(k, False) != v},
        }

    def reset_edits(self):
        self._masked_edits.clear()
        self._undressed_edits.clear()

    def masked_state(self) -> Dict[str, bool]:
        """Loaded mask flags with the edits applied, aggregate names folded"""
        masked = {mask_key(name): flag for name, flag in self._masked_snapshot.items()}
        for name, flag in self._masked_edits.items():
            masked[mask_key(name)] = flag
        return masked

    def _commit_write(self, properties: PropertyTable, category_name: str):
        self.properties = properties
        if self.category_changed:
            self.header.category = category_name
            self.category_name = category_name
            self._baseline_category = self._category

    def to_bytes(self) -> bytes:
        return MenuWriter().to_bytes(self)

    def write(self, file_path: str):
        """Serialize the current state to a file"""
        MenuWriter().write(file_path, self)


class MenuParser:
    """Parser for .menu files"""

    def __init__(self, catalog: Optional[SlotCatalog] = None, encoding: str = 'utf-8'):
        self.catalog = catalog or SlotCatalog()
        self.encoding = encoding
        self.section_length: Optional[int] = None
        self.reserved: Optional[int] = None
        self.recovery_errors: List[str] = []

    def read(self, file_path: str) -> MenuItem:
        """Read and parse a menu file"""
        with open(file_path, 'rb') as f:
            return self.load(f, file_name=os.path.basename(file_path))

    def load(self, stream: BinaryIO, file_name: Optional[str] = None) -> MenuItem:
        """Load a menu from a stream; the whole stream is read first"""
        return self.parse_bytes(stream.read(), file_name=file_name)

    def parse_bytes(self, data: bytes, file_name: Optional[str] = None) -> MenuItem:
        self.section_length = None
        self.reserved = None
        self.recovery_errors = []

        stream = io.BytesIO(data)
        header = self._parse_header(stream, len(data))
        properties = self._parse_properties(stream)

        item = MenuItem(header, properties, file_name=file_name, catalog=self.catalog)
        if item.category_error is not None:
            self.recovery_errors.append(str(item.category_error))

        logger.debug(f"Parsed menu {file_name or '<bytes>'}: version {header.version}, "
                     f"{len(properties)} records")
        return item

    def _parse_header(self, stream: BinaryIO, total_size: int) -> MenuHeader:
        try:
            tag = self._read_string(stream)
        except MenuCorruptedError:
            raise FormatError("Menu header is too short")
        if tag != MENU_HEADER:
            raise FormatError(f"Invalid header '{tag}', expected '{MENU_HEADER}'")

        header = MenuHeader(tag=tag)
        header.version = self._read_int32(stream)
        header.path = self._read_string(stream)
        header.name = self._read_string(stream)
        header.category = self._read_string(stream)
        header.description = self._read_string(stream)

        # Game files store only the section length here; also accept an extra
        # reserved value in front of it
        first = self._read_int32(stream)
        remaining = total_size - stream.tell()
        self.section_length = first
        if first != remaining and remaining >= 4:
            position = stream.tell()
            second = self._read_int32(stream)
            if second == remaining - 4:
                self.reserved = first
                self.section_length = second
            else:
                stream.seek(position)

        return header

    def _parse_properties(self, stream: BinaryIO) -> PropertyTable:
        properties = PropertyTable()
        while True:
            count_byte = stream.read(1)
            if not count_byte:
                logger.debug("Menu property section ended without a terminator")
                break
            count = count_byte[0]
            if count == 0:
                break

            strings = [self._read_string(stream) for _ in range(count)]
            key = strings[0]
            if key == END_KEY:
                break
            properties.append(MenuProperty(key, strings[1:]))
        return properties

    def _read_exact(self, stream: BinaryIO, size: int) -> bytes:
        data = stream.read(size)
        if len(data) < size:
            raise MenuCorruptedError(f"Unexpected EOF reading {size} bytes at offset {stream.tell()}")
        return data

    def _read_int32(self, stream: BinaryIO) -> int:
        return struct.unpack('<i', self._read_exact(stream, 4))[0]

    def _read_7bit_int(self, stream: BinaryIO) -> int:
        """Read a 7-bit encoded length prefix"""
        result = 0
        shift = 0
        while True:
            byte = self._read_exact(stream, 1)[0]
            result |= (byte & 0x7F) << shift
            if not byte & 0x80:
                return result
            shift += 7
            if shift >= 35:
                raise MenuCorruptedError("Malformed string length prefix")

    def _read_string(self, stream: BinaryIO) -> str:
        """Read length-prefixed string"""
        length = self._read_7bit_int(stream)
        if length == 0:
            return ""
        return self._read_exact(stream, length).decode(self.encoding, errors='surrogateescape')


@dataclass
class _EncodeState:
    name: str
    description: str
    new_category: str
    previous_category: str
    category_changed: bool
    masked: Dict[str, bool]
    undressed: Dict[Slot, bool]
    catalog: SlotCatalog
    category_default_item: Optional[str]


class MenuWriter:
    """Writer for .menu files"""

    def __init__(self, encoding: str = 'utf-8'):
        self.encoding = encoding
        self._rules: Dict[str, Callable[[MenuProperty, _EncodeState], bool]] = {
            PropertyKey.NAME.value: self._apply_name,
            PropertyKey.DESCRIPTION.value: self._apply_description,
            PropertyKey.CATEGORY.value: self._apply_category,
            PropertyKey.MASK_ITEM.value: self._apply_mask_item,
            PropertyKey.ITEM.value: self._apply_item,
        }

    def write(self, file_path: str, item: MenuItem):
        """Write a menu item to file"""
        data = self.to_bytes(item)
        with open(file_path, 'wb') as f:
            f.write(data)
        logger.info(f"Wrote menu {file_path} ({len(data)} bytes)")

    def save(self, stream: BinaryIO, item: MenuItem):
        """Save a menu item to a stream"""
        stream.write(self.to_bytes(item))

    def to_bytes(self, item: MenuItem) -> bytes:
        new_category = item.new_category_name
        state = _EncodeState(
            name=item.name,
            description=item.description,
            new_category=new_category,
            previous_category=item.category_name,
            category_changed=item.category_changed,
            masked=item.masked_state(),
            undressed=dict(item.undressed_slots),
            catalog=item.catalog,
            category_default_item=item.catalog.default_filename(item.category),
        )

        out = io.BytesIO()
        self._write_string(out, item.header.tag)
        out.write(struct.pack('<i', item.header.version))
        self._write_string(out, item.header.path)
        self._write_string(out, item.name)
        self._write_string(out, new_category if state.category_changed else item.header.category)
        self._write_string(out, item.description)

        properties = item.properties.copy()
        self._insert_masks(properties, state)
        self._insert_undressed(properties, state)

        section = io.BytesIO()
        written = 0
        for prop in properties:
            if prop.values:
                rule = self._rules.get(prop.key, self._apply_default)
                if not rule(prop, state):
                    continue
            self._write_property(section, prop)
            written += 1

        if properties.find(END_KEY) is None:
            section.write(b'\x00')

        section_bytes = section.getvalue()
        out.write(struct.pack('<i', len(section_bytes)))
        out.write(section_bytes)

        item._commit_write(properties, new_category)
        logger.debug(f"Encoded menu {item.file_name or '<item>'}: {written} of {len(properties)} records")
        return out.getvalue()

    def _insert_masks(self, properties: PropertyTable, state: _EncodeState):
        key = PropertyKey.MASK_ITEM.value
        index = properties.last_index(key) + 1

        for name, masked in state.masked.items():
            if not masked or aggregate_for_part(name) is not None:
                continue

            parts = MASK_AGGREGATES.get(name)
            if parts:
                names = (name,) + parts
                if any(properties.has_value(key, n, ignore_case=True) for n in names):
                    continue
                new_values = parts
            elif properties.has_value(key, name):
                continue
            else:
                new_values = (name,)

            for value in new_values:
                properties.insert(index, MenuProperty(key, [value]))
                index += 1

    def _insert_undressed(self, properties: PropertyTable, state: _EncodeState):
        key = PropertyKey.ITEM.value
        last = properties.last_index(key)
        index = last + 1 if last >= 0 else len(properties)

        for slot, undressed in state.undressed.items():
            if not undressed:
                continue
            default_item = state.catalog.default_filename(slot)
            if default_item is None or properties.has_value(key, default_item, ignore_case=True):
                continue
            properties.insert(index, MenuProperty(key, [default_item]))
            index += 1

    def _apply_name(self, prop: MenuProperty, state: _EncodeState) -> bool:
        prop.values[0] = state.name.replace(' ', NAME_SPACE_PLACEHOLDER)
        return True

    def _apply_description(self, prop: MenuProperty, state: _EncodeState) -> bool:
        prop.values[0] = state.description
        return True

    def _apply_category(self, prop: MenuProperty, state: _EncodeState) -> bool:
        if state.category_changed:
            prop.values[0] = state.new_category
        return True

    def _apply_mask_item(self, prop: MenuProperty, state: _EncodeState) -> bool:
        value = prop.values[0]
        aggregate = aggregate_for_part(value)
        if aggregate is not None:
            return state.masked.get(aggregate, False) and state.masked.get(value, True)
        return state.masked.get(mask_key(value), False)

    def _apply_item(self, prop: MenuProperty, state: _EncodeState) -> bool:
        value = prop.values[0]
        slot = state.catalog.slot_for_filename(value)
        if slot is not None and not state.undressed.get(slot, False):
            return False
        # The item now occupies this slot, so it must not remove itself
        if state.category_default_item and value.lower() == state.category_default_item.lower():
            return False
        return True

    def _apply_default(self, prop: MenuProperty, state: _EncodeState) -> bool:
        previous = state.previous_category.lower()
        if not state.category_changed or not previous or previous == state.new_category.lower():
            return True
        for i, value in enumerate(prop.values):
            if value.lower() == previous:
                prop.values[i] = state.new_category
        return True

    def _write_property(self, stream: BinaryIO, prop: MenuProperty):
        stream.write(struct.pack('B', len(prop.values) + 1))
        self._write_string(stream, prop.key)
        for value in prop.values:
            self._write_string(stream, value)

    def _write_string(self, stream: BinaryIO, s: str):
        """Write length-prefixed string"""
        encoded = s.encode(self.encoding, errors='surrogateescape')
        length = len(encoded)
        prefix = bytearray()
        while length >= 0x80:
            prefix.append((length & 0x7F) | 0x80)
            length >>= 7
        prefix.append(length)
        stream.write(bytes(prefix))
        stream.write(encoded)


def decode(data: bytes, file_name: Optional[str] = None,
           catalog: Optional[SlotCatalog] = None) -> MenuItem:
    """Parse a complete menu file held in memory"""
    return MenuParser(catalog=catalog).parse_bytes(data, file_name=file_name)


def encode(item: MenuItem) -> bytes:
    """Serialize a menu item to bytes"""
    return MenuWriter().to_bytes(item)
