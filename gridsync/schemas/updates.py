# gridsync/schemas/updates.py
# Tagged update payloads accepted by POST /api/update and stored in the update log

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from gridsync.constants import PresenceColor

Direction = Literal["across", "down"]


class WireModel(BaseModel):
    """Base for camelCase wire objects (snake_case in Python)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class CellValue(WireModel):
    value: str = ""
    is_black: bool = Field(default=False, alias="isBlack")
    clue_number: Optional[int] = Field(default=None, alias="clueNumber")

    @field_validator("value", mode="before")
    @classmethod
    def none_is_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("value")
    @classmethod
    def single_letter(cls, v: str) -> str:
        """A cell holds at most one character, stored uppercase."""
        if len(v) > 1:
            raise ValueError("a cell holds at most one character")
        return v.upper()


class ClueRef(WireModel):
    direction: Direction
    number: str

    @field_validator("number", mode="before")
    @classmethod
    def normalize_number(cls, v: Any) -> str:
        """Accept 5 or "5"; clue maps are keyed by the string form."""
        if isinstance(v, bool):
            raise ValueError("clue number must be a string or integer")
        if isinstance(v, int):
            return str(v)
        if isinstance(v, str) and v.strip():
            return v.strip()
        raise ValueError("clue number must be a non-empty string or integer")


class CellPosition(WireModel):
    kind: Literal["cell"] = "cell"
    row: int
    col: int
    clue: Optional[ClueRef] = None


class CluePosition(ClueRef):
    kind: Literal["clue"] = "clue"


Position = Annotated[Union[CellPosition, CluePosition], Field(discriminator="kind")]


# --- Payload variants ---

class GridUpdate(WireModel):
    type: Literal["grid-update"] = "grid-update"
    key: str
    value: CellValue


class ClueUpdate(ClueRef):
    type: Literal["clue-update"] = "clue-update"
    text: str = ""

    @field_validator("text", mode="before")
    @classmethod
    def none_is_empty(cls, v: Any) -> Any:
        return "" if v is None else v


class ClueDelete(ClueRef):
    type: Literal["clue-delete"] = "clue-delete"


class CluesBulkUpdate(WireModel):
    type: Literal["clues-update-bulk"] = "clues-update-bulk"
    clues: dict[Direction, dict[str, str]] = Field(default_factory=dict)


class ClearAll(WireModel):
    type: Literal["clear-all"] = "clear-all"


class PresenceHeartbeat(WireModel):
    """Body of POST /api/presence. A null position means "idle or gone"."""
    client_id: Optional[str] = Field(default=None, alias="clientId")
    color: Optional[PresenceColor] = None
    position: Optional[Position] = None


class PresenceUpdate(PresenceHeartbeat):
    type: Literal["presence-update"] = "presence-update"


class DisconnectRequest(WireModel):
    client_id: Optional[str] = Field(default=None, alias="clientId")


MutationPayload = Union[GridUpdate, ClueUpdate, ClueDelete, CluesBulkUpdate, ClearAll]

UpdatePayload = Annotated[
    Union[GridUpdate, ClueUpdate, ClueDelete, CluesBulkUpdate, ClearAll, PresenceUpdate],
    Field(discriminator="type"),
]

UPDATE_PAYLOAD_ADAPTER: TypeAdapter = TypeAdapter(UpdatePayload)
POSITION_ADAPTER: TypeAdapter = TypeAdapter(Optional[Position])


def parse_update_payload(data: Any):
    """Validate a decoded JSON object into one payload variant.

    Raises pydantic.ValidationError for unknown tags or malformed fields.
    """
    return UPDATE_PAYLOAD_ADAPTER.validate_python(data)
