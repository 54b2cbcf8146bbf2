from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, field_validator

# Field selectors with special meaning; anything else names a child field.
KEY_FIELD = "$key"
PRIORITY_FIELD = "$priority"


@dataclass(frozen=True)
class CursorSettings:
    """
    Tuning knobs for an Offset cursor.

    Recaches are coalesced for 100ms but never delayed more than a second.
    The live window looks back at most 50 rows. Growth gives up after
    10,000 pages.
    """

    recache_wait_ms: float = 100
    recache_max_wait_ms: float = 1000
    window_rows: int = 50
    max_growth_steps: int = 10_000


DEFAULT_SETTINGS = CursorSettings()


class OffsetOptions(BaseModel):
    """
    Construction input for an Offset cursor.

    `max` is accepted as an alias for `page_size` so plain option
    dicts ({"field": ..., "ref": ..., "max": ...}) validate directly.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, arbitrary_types_allowed=True)

    field: str = Field(min_length=1)
    ref: Any
    page_size: PositiveInt = Field(alias="max")

    @field_validator("ref")
    @classmethod
    def _require_ref(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("ref must be an ordered collection query")
        return value

    @property
    def orders_by_child(self) -> bool:
        return self.field not in (KEY_FIELD, PRIORITY_FIELD)
