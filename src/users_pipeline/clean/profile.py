"""Profiling queries for the raw user records.

These summarize null behaviour and duplication before cleaning: how many
values each column holds, how many are missing, how many are distinct, and
which rows are entirely empty. Counts skip nulls the way SQL `count(col)`
does; `total_rows` counts every row like `count(*)`.
"""
from __future__ import annotations

import logging
from typing import Any

import pandas as pd

from users_pipeline.clean.transform import DEDUP_KEY, RAW_COLUMNS, select_raw_columns

log = logging.getLogger(__name__)

_MISSING_KEYS = {
    "user_id": "missing_user_ids",
    "user_first_touch_timestamp": "missing_timestamps",
    "email": "missing_emails",
    "updated": "missing_updates",
}


def count_non_null(pdf: pd.DataFrame) -> dict[str, int]:
    """Non-null count per raw column plus `total_rows`."""
    raw = select_raw_columns(pdf)
    counts = {col: int(raw[col].notna().sum()) for col in RAW_COLUMNS}
    counts["total_rows"] = len(raw)
    return counts


def count_missing(pdf: pd.DataFrame) -> dict[str, int]:
    """Null count per raw column, keyed e.g. `missing_user_ids`."""
    raw = select_raw_columns(pdf)
    return {key: int(raw[col].isna().sum()) for col, key in _MISSING_KEYS.items()}


def distinct_summary(pdf: pd.DataFrame) -> dict[str, int]:
    """Total vs distinct counts per column, and for whole rows.

    `unique_non_null_rows` only considers rows with no null field, matching
    `count(DISTINCT *)`.
    """
    raw = select_raw_columns(pdf)
    complete = raw.dropna(how="any")
    return {
        "total_ids": int(raw["user_id"].notna().sum()),
        "unique_ids": int(raw["user_id"].nunique(dropna=True)),
        "total_emails": int(raw["email"].notna().sum()),
        "unique_emails": int(raw["email"].nunique(dropna=True)),
        "total_updates": int(raw["updated"].notna().sum()),
        "unique_updates": int(raw["updated"].nunique(dropna=True)),
        "total_rows": len(raw),
        "unique_non_null_rows": len(complete.drop_duplicates()),
    }


def count_distinct_keys(pdf: pd.DataFrame) -> int:
    """Distinct `(user_id, user_first_touch_timestamp)` pairs with a user_id."""
    raw = select_raw_columns(pdf)
    keyed = raw[raw["user_id"].notna()]
    return len(keyed[DEDUP_KEY].drop_duplicates())


def all_null_rows(pdf: pd.DataFrame) -> pd.DataFrame:
    """Rows whose four raw fields are all null."""
    raw = select_raw_columns(pdf)
    return raw[raw.isna().all(axis=1)]


def profile_users(pdf: pd.DataFrame) -> dict[str, Any]:
    """Combine every profiling query into a single flat dict and log it."""
    profile: dict[str, Any] = {}
    profile.update(distinct_summary(pdf))
    profile.update(count_missing(pdf))
    profile["distinct_keys"] = count_distinct_keys(pdf)
    profile["all_null_rows"] = len(all_null_rows(pdf))

    log.info(
        "Profiled %d rows: %d distinct keys, %d all-null rows",
        profile["total_rows"],
        profile["distinct_keys"],
        profile["all_null_rows"],
    )
    return profile
