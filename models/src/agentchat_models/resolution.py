"""Tri-state resolution updates.

A resolution can be left unchanged, explicitly cleared, or set to a value.
Metadata dicts encode this as: key absent, key present with None, key
present with a value.
"""

from enum import Enum
from typing import Any
from pydantic import BaseModel, ConfigDict


RESOLUTION_KEY = "resolution"


class ResolutionState(str, Enum):
    """What a resolution update does."""

    UNSET = "unset"
    CLEAR = "clear"
    VALUE = "value"


class ResolutionUpdate(BaseModel):
    """An update to one side's recorded resolution."""

    model_config = ConfigDict(frozen=True)

    state: ResolutionState = ResolutionState.UNSET
    value: Any = None

    @classmethod
    def unset(cls) -> "ResolutionUpdate":
        return cls(state=ResolutionState.UNSET)

    @classmethod
    def clear(cls) -> "ResolutionUpdate":
        return cls(state=ResolutionState.CLEAR)

    @classmethod
    def of(cls, value: Any) -> "ResolutionUpdate":
        if value is None:
            return cls.clear()
        return cls(state=ResolutionState.VALUE, value=value)

    @classmethod
    def from_metadata(cls, metadata: dict[str, Any] | None) -> "ResolutionUpdate":
        """Read the resolution of a message's metadata."""
        if not metadata or RESOLUTION_KEY not in metadata:
            return cls.unset()
        return cls.of(metadata[RESOLUTION_KEY])

    @property
    def is_set(self) -> bool:
        return self.state != ResolutionState.UNSET

    def apply(self, current: Any) -> Any:
        """Return the resolution after applying this update to `current`."""
        if self.state == ResolutionState.UNSET:
            return current
        if self.state == ResolutionState.CLEAR:
            return None
        return self.value
