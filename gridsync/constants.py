# gridsync/constants.py
# Wire-level names shared by the server and the sync client

from enum import Enum

GRID_SIZE: int = 15

CLIENT_ID_HEADER: str = "X-Client-ID"

ACROSS: str = "across"
DOWN: str = "down"
DIRECTIONS: tuple[str, ...] = (ACROSS, DOWN)

# Update payload tags
GRID_UPDATE: str = "grid-update"
CLUE_UPDATE: str = "clue-update"
CLUE_DELETE: str = "clue-delete"
CLUES_UPDATE_BULK: str = "clues-update-bulk"
CLEAR_ALL: str = "clear-all"
PRESENCE_UPDATE: str = "presence-update"

PAYLOAD_TAGS: tuple[str, ...] = (
    GRID_UPDATE,
    CLUE_UPDATE,
    CLUE_DELETE,
    CLUES_UPDATE_BULK,
    CLEAR_ALL,
    PRESENCE_UPDATE,
)


class PresenceColor(str, Enum):
    """Fixed palette a user's cursor is drawn in."""
    RED = "red"
    BLUE = "blue"
    GREEN = "green"
    ORANGE = "orange"
    PURPLE = "purple"
    TEAL = "teal"
    PINK = "pink"
    BROWN = "brown"


def cell_key(row: int, col: int) -> str:
    """Composite grid key, e.g. (3, 7) -> "3-7"."""
    return f"{row}-{col}"


def parse_cell_key(key: str) -> tuple[int, int]:
    """Inverse of cell_key. Raises ValueError on anything else."""
    row, sep, col = key.partition("-")
    if not sep:
        raise ValueError(f"not a cell key: {key!r}")
    return int(row), int(col)
