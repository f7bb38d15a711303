"""Result models delivered to store completions."""

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..errors import KeyValueStoreError

StoredValue = Union[bool, int, float, str, datetime, bytes]


class LoadResult(BaseModel):
    """Outcome of a load: the entries now in memory, or the error that kept the store unloaded."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    loaded: bool
    entries: dict[str, StoredValue] = Field(default_factory=dict)
    error: Optional[KeyValueStoreError] = None
