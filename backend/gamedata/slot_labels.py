"""Display labels for slots. Labels are only shown, never written to menus."""
import json
from pathlib import Path
from typing import Dict, Optional, Union

from loguru import logger

from gamedata.slots import Slot


class SlotLabelProvider:
    """Maps slots to user-facing labels, falling back to the slot name"""

    def __init__(self, labels: Optional[Dict[str, str]] = None):
        self._labels = {name.lower(): label for name, label in (labels or {}).items()}

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> 'SlotLabelProvider':
        path = Path(path)
        if not path.exists():
            logger.warning(f"Slot label file not found: {path}, using slot names")
            return cls()
        with open(path, 'r', encoding='utf-8') as f:
            return cls(json.load(f))

    def label(self, slot: Slot) -> str:
        return self._labels.get(slot.name.lower(), slot.name)

    def __call__(self, slot: Slot) -> str:
        return self.label(slot)
