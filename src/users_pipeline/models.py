"""Pydantic models used for Raw and Clean validation.

These models define the expected schema for raw user records and for the
cleaned, enriched records written to the Clean layer.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import numpy as np
import pandas as pd
from pydantic import BaseModel, ConfigDict, Field


class RawUser(BaseModel):
    """Schema for a raw user record (before cleaning). Every field may be null."""
    model_config = ConfigDict(extra="forbid")
    user_id: str | None = None
    user_first_touch_timestamp: int | None = None
    email: str | None = None
    updated: Any = None


class CleanUser(BaseModel):
    """Schema for a cleaned, deduplicated and enriched user record.

    Attributes:
        user_id: User identifier (never null after cleaning).
        user_first_touch_timestamp: First touch in microseconds since the epoch.
        email: Email kept by the merge policy, if any.
        updated: Update marker kept by the merge policy, if any.
        first_touch: First touch as a calendar timestamp.
        first_touch_date: Display date, e.g. "Jan 3, 2022".
        first_touch_time: Display time, 24-hour "HH:MM:SS".
        email_domain: Part of `email` after the first "@", if any.
    """
    model_config = ConfigDict(extra="forbid")
    user_id: str
    user_first_touch_timestamp: int
    email: str | None
    updated: Any = None
    first_touch: datetime
    first_touch_date: str = Field(..., pattern=r"^[A-Z][a-z]{2} \d{1,2}, \d{4}$")
    first_touch_time: str = Field(..., pattern=r"^\d{2}:\d{2}:\d{2}$")
    email_domain: str | None


def plain_value(value: Any) -> Any:
    """Map pandas missing markers to None and numpy scalars to Python ones."""
    if value is None or isinstance(value, (list, dict)):
        return value
    if pd.isna(value):
        return None
    if isinstance(value, np.generic):
        return value.item()
    return value


def plain_record(rec: dict[str, Any]) -> dict[str, Any]:
    """Return `rec` with every value passed through `plain_value`."""
    return {k: plain_value(v) for k, v in rec.items()}
