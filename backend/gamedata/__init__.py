# Gamedata module
# Submodules should be imported directly:
#   from gamedata.slots import Slot, SlotCatalog
#   from gamedata.slot_labels import SlotLabelProvider

from pathlib import Path

# Bundled tables shipped with the editor
DATA_DIR = Path(__file__).parent / "data"
DEFAULT_ITEMS_PATH = DATA_DIR / "default_items.json"
SLOT_LABELS_PATH = DATA_DIR / "slot_labels.json"
