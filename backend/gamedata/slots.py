"""
Slot catalog for menu items.

Slots are the part identifiers a menu item attaches to. The enumeration
order matters: wear slots form one contiguous range.
"""

import json
from enum import IntEnum
from pathlib import Path
from typing import Dict, Iterator, Mapping, Optional, Union

from loguru import logger


class UnknownSlotError(ValueError):
    """Raised when a slot name does not match any known slot"""

    def __init__(self, name: str):
        super().__init__(f"Unknown slot '{name}'")
        self.name = name


_SLOT_NAMES = (
    "null_mpn",
    # body shape sliders
    "MuneL", "MuneS", "MuneTare", "RegFat", "ArmL", "Hara", "RegMeet",
    "KubiScl", "UdeScl", "EyeScl", "EyeSclX", "EyeSclY", "EyePosX", "EyePosY",
    "EyeClose", "EyeBallPosX", "EyeBallPosY", "EyeBallSclX", "EyeBallSclY",
    "EarNone", "EarElf", "EarRot", "EarScl", "NosePos", "NoseScl",
    "FaceShape", "MayuShapeIn", "MayuShapeOut", "MayuX", "MayuY", "MayuRot",
    "HeadX", "HeadY", "DouPer", "sintyou", "koshi", "kata", "west",
    "MuneUpDown", "MuneYori",
    # body parts
    "body", "moza", "head", "hairf", "hairr", "hairt", "hairs", "hairaho",
    "haircolor", "skin", "acctatoo", "accnail", "underhair", "hokuro",
    "mayu", "lip", "eye", "eye_hi", "eye_hi_r", "chikubi", "chikubicolor",
    "eyewhite", "nose", "facegloss",
    # wear
    "wear", "skirt", "mizugi", "bra", "panz", "stkg", "shoes", "headset",
    "glove", "acchead", "accha", "acchana", "acckamisub", "acckami",
    "accmimi", "accnip", "acckubi", "acckubiwa", "accheso", "accude",
    "accashi", "accsenaka", "accshippo", "accanl", "accvag", "megane",
    "accxxx", "handitem", "acchat", "onepiece",
    # sets and folders
    "set_maidwear", "set_mywear", "set_underwear", "set_body",
    "folder_eye", "folder_mayu", "folder_underhair", "folder_skin",
    "folder_eyewhite",
    "kousoku_upper", "kousoku_lower",
)

Slot = IntEnum("Slot", _SLOT_NAMES, start=0)
Slot.__doc__ = "Slot identifiers, spelled as they appear in menu files"

WEAR_START = Slot.wear
WEAR_END = Slot.onepiece
# Teeth sit inside the wear range but are part of the body
EXCLUDED_WEAR_SLOT = Slot.accha

_SLOTS_BY_NAME = {slot.name.lower(): slot for slot in Slot}


def parse_slot(name: str) -> Slot:
    """Resolve a slot name case-insensitively"""
    slot = _SLOTS_BY_NAME.get((name or "").strip().lower())
    if slot is None:
        raise UnknownSlotError(name)
    return slot


def is_wear_slot(slot: Slot) -> bool:
    """True for slots worn as clothing/accessories"""
    return WEAR_START <= slot <= WEAR_END and slot != EXCLUDED_WEAR_SLOT


def is_item_slot(slot: Slot) -> bool:
    """True for slots an item can be equipped in (body parts and wear)"""
    return Slot.body <= slot <= WEAR_END


# Mask-able body parts, spelled as the mask records expect them
BODY_SLOTS = (
    "body", "head", "eye", "hairF", "hairR", "hairS", "hairT", "wear",
    "skirt", "onepiece", "mizugi", "panz", "bra", "stkg", "shoes",
    "headset", "glove", "accHead", "hairAho", "accHana", "accHa",
    "accKami_1_", "accKami_2_", "accKami_3_", "accMiMiR", "accMiMiL",
    "accNipR", "accNipL", "accKubi", "accKubiwa", "accHeso", "accUde",
    "accAshi", "accSenaka", "accShippo", "accAnl", "accVag", "kubiwa",
    "megane", "accXXX", "chinko", "chikubi", "accHat", "kousoku_upper",
    "kousoku_lower",
)

_BODY_SLOTS_BY_NAME = {name.lower(): name for name in BODY_SLOTS}

# Aggregate mask slots have no record of their own
MASK_AGGREGATES: Dict[str, tuple] = {
    "chikubi": ("accNipL", "accNipR"),
}


def body_slot_name(slot: Slot) -> Optional[str]:
    """Canonical mask name for a slot, or None if the slot cannot be masked"""
    return _BODY_SLOTS_BY_NAME.get(slot.name.lower())


def aggregate_for_part(name: str) -> Optional[str]:
    """Aggregate mask slot that owns the given sub-part, if any"""
    wanted = name.lower()
    for aggregate, parts in MASK_AGGREGATES.items():
        if any(part.lower() == wanted for part in parts):
            return aggregate
    return None


def mask_key(name: str) -> str:
    """Key a mask name is tracked under; aggregate names are folded to one spelling"""
    lowered = name.lower()
    return lowered if lowered in MASK_AGGREGATES else name


# Used when the host table has no entry for the slot
FALLBACK_DEFAULT_ITEMS: Dict[Slot, str] = {
    Slot.nose: "nose_del_i_.menu",
    Slot.facegloss: "facegloss_del_i_.menu",
}


class SlotCatalog:
    """Default "remove" item lookup with a host table and a static fallback"""

    def __init__(self, primary: Optional[Mapping[Slot, str]] = None):
        self.primary: Dict[Slot, str] = dict(primary or {})
        self.fallback: Dict[Slot, str] = dict(FALLBACK_DEFAULT_ITEMS)

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> 'SlotCatalog':
        """Build a catalog whose host table is read from a JSON object"""
        with open(path, 'r', encoding='utf-8') as f:
            raw = json.load(f)

        primary = {}
        for name, filename in raw.items():
            try:
                primary[parse_slot(name)] = filename
            except UnknownSlotError:
                logger.warning(f"Skipping default item for unknown slot '{name}' in {path}")
        logger.debug(f"Loaded {len(primary)} default items from {path}")
        return cls(primary)

    def _tables(self) -> Iterator[Dict[Slot, str]]:
        yield self.primary
        yield self.fallback

    def default_filename(self, slot: Optional[Slot]) -> Optional[str]:
        """Default remove filename for a slot; None means it cannot be undressed"""
        if slot is None:
            return None
        for table in self._tables():
            if slot in table:
                return table[slot]
        return None

    def slot_for_filename(self, filename: str) -> Optional[Slot]:
        """Reverse lookup of a default remove filename"""
        wanted = filename.lower()
        for table in self._tables():
            for slot, default in table.items():
                if default.lower() == wanted:
                    return slot
        return None

    def undressable_slots(self) -> list:
        """Slots that have a default remove item, in slot order"""
        return sorted({slot for table in self._tables() for slot in table})
