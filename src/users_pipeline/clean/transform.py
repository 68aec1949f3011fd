"""Cleaning and enrichment of raw user records.

Steps, applied in order:

1. drop records without a `user_id` (it is the dedup key)
2. coerce `user_first_touch_timestamp` to integral microseconds
3. collapse duplicates on `(user_id, user_first_touch_timestamp)` using a
   null-skipping merge policy for `email` and `updated`
4. derive `first_touch`, its display date and time, and `email_domain`

Each step is a plain pandas function, so the pipeline runs either on a
single DataFrame (`clean_users_frame`) or partition-wise using Dask
(`clean_users_ddf`).
"""
from __future__ import annotations

import logging
import re
from typing import Any, Callable

import pandas as pd

from users_pipeline.errors import EmptyInput, InvalidTimestamp

log = logging.getLogger(__name__)

RAW_COLUMNS = ["user_id", "user_first_touch_timestamp", "email", "updated"]
DEDUP_KEY = ["user_id", "user_first_touch_timestamp"]
DERIVED_COLUMNS = ["first_touch", "first_touch_date", "first_touch_time", "email_domain"]
CLEAN_COLUMNS = RAW_COLUMNS + DERIVED_COLUMNS

EMAIL_DOMAIN_RE = re.compile(r"@(.+)")

# Representable range of pandas timestamps, in microseconds.
MIN_MICROS = -((-pd.Timestamp.min.value) // 1000)
MAX_MICROS = pd.Timestamp.max.value // 1000

_SAMPLE_SIZE = 5


# -----------------------------
# Merge policies
# -----------------------------
def _extreme(values: pd.Series, pick: Callable[..., Any]) -> Any:
    """Apply `pick` (max or min) to the non-null values.

    Groups holding values of incomparable types (e.g. 1 and "2022-01-01")
    are ordered by their string form instead.
    """
    present = values.dropna().tolist()
    if not present:
        return None
    try:
        return pick(present)
    except TypeError:
        return pick(present, key=str)


def merge_max(values: pd.Series) -> Any:
    """Largest non-null value, or None when every value is null."""
    return _extreme(values, max)


def merge_min(values: pd.Series) -> Any:
    """Smallest non-null value, or None when every value is null."""
    return _extreme(values, min)


def merge_first(values: pd.Series) -> Any:
    """First non-null value in input order."""
    present = values.dropna()
    return present.iloc[0] if len(present) else None


def merge_last(values: pd.Series) -> Any:
    """Last non-null value in input order."""
    present = values.dropna()
    return present.iloc[-1] if len(present) else None


MERGE_POLICIES: dict[str, Callable[[pd.Series], Any]] = {
    "max": merge_max,
    "min": merge_min,
    "first": merge_first,
    "last": merge_last,
}


def extract_email_domain(email: Any) -> str | None:
    """Return everything after the first "@" in `email`, or None.

    >>> extract_email_domain("bob@sub.example.com")
    'sub.example.com'
    >>> extract_email_domain("noatsign") is None
    True
    """
    if not isinstance(email, str):
        return None
    m = EMAIL_DOMAIN_RE.search(email)
    return m.group(1) if m else None


# -----------------------------
# Pipeline steps
# -----------------------------
def select_raw_columns(pdf: pd.DataFrame) -> pd.DataFrame:
    """Keep only the four raw columns; absent columns become all-null."""
    pdf = pdf.copy()
    for col in RAW_COLUMNS:
        if col not in pdf.columns:
            pdf[col] = None
    return pdf[RAW_COLUMNS]


def drop_null_user_ids(pdf: pd.DataFrame) -> pd.DataFrame:
    """Discard records whose `user_id` is null."""
    return pdf[pdf["user_id"].notna()]


def coerce_timestamps(pdf: pd.DataFrame) -> pd.DataFrame:
    """Convert `user_first_touch_timestamp` to int64 microseconds.

    Numeric strings and integral floats are accepted, so "1000000", 1000000
    and 1e6 all denote the same instant and later collapse together.

    Raises:
        InvalidTimestamp: for null, boolean, non-numeric, non-integral or
            out-of-range values.
    """
    raw = pdf["user_first_touch_timestamp"]
    as_object = raw.astype(object)
    numeric = pd.to_numeric(as_object, errors="coerce")

    is_bool = as_object.map(pd.api.types.is_bool).astype(bool)
    bad = (numeric.isna() | (numeric % 1 != 0)).fillna(True).astype(bool) | is_bool
    if bad.any():
        raise InvalidTimestamp(raw[bad].head(_SAMPLE_SIZE).tolist())

    out_of_range = ((numeric < MIN_MICROS) | (numeric > MAX_MICROS)).astype(bool)
    if out_of_range.any():
        raise InvalidTimestamp(raw[out_of_range].head(_SAMPLE_SIZE).tolist(), "out of range")

    pdf = pdf.copy()
    pdf["user_first_touch_timestamp"] = numeric.astype("int64")
    return pdf


def collapse_duplicates(pdf: pd.DataFrame, policy: str = "max") -> pd.DataFrame:
    """Emit one record per `(user_id, user_first_touch_timestamp)` pair.

    `email` and `updated` are merged with the named policy (see
    `MERGE_POLICIES`). The result is ordered by the dedup key.
    """
    try:
        merge = MERGE_POLICIES[policy]
    except KeyError:
        raise ValueError(
            f"Unknown merge policy {policy!r}; expected one of {sorted(MERGE_POLICIES)}"
        ) from None

    if pdf.empty:
        return pdf[RAW_COLUMNS].reset_index(drop=True)

    collapsed = (
        pdf.groupby(DEDUP_KEY, sort=True, dropna=False)
        .agg(email=("email", merge), updated=("updated", merge))
        .reset_index()
    )
    return collapsed[RAW_COLUMNS]


def derive_display_fields(pdf: pd.DataFrame, timezone: str = "UTC") -> pd.DataFrame:
    """Add `first_touch`, `first_touch_date`, `first_touch_time`, `email_domain`.

    `first_touch` is the microsecond timestamp read as UTC and converted to
    `timezone`. The date is rendered like "Jan 3, 2022" and the time as
    24-hour "HH:MM:SS".
    """
    pdf = pdf.copy()
    micros = pdf["user_first_touch_timestamp"].astype("int64")

    try:
        first_touch = pd.to_datetime(micros, unit="us", utc=True)
    except (OverflowError, pd.errors.OutOfBoundsDatetime) as e:
        raise InvalidTimestamp(micros.head(_SAMPLE_SIZE).tolist(), "out of range") from e
    first_touch = first_touch.dt.tz_convert(timezone)

    pdf["first_touch"] = first_touch
    # day of month without zero padding, as in "Jan 3, 2022"
    pdf["first_touch_date"] = (
        first_touch.dt.strftime("%b ")
        + first_touch.dt.day.astype(str)
        + first_touch.dt.strftime(", %Y")
    )
    pdf["first_touch_time"] = first_touch.dt.strftime("%H:%M:%S")
    pdf["email_domain"] = pdf["email"].map(extract_email_domain)
    return pdf[CLEAN_COLUMNS]


# -----------------------------
# Entry points
# -----------------------------
def clean_users_frame(
    pdf: pd.DataFrame,
    policy: str = "max",
    timezone: str = "UTC",
    allow_empty: bool = False,
) -> pd.DataFrame:
    """Run the full cleaning pipeline over a pandas DataFrame.

    Args:
        pdf: Raw user records; extra columns (such as the derived columns of
            an earlier run) are ignored.
        policy: Merge policy name for conflicting `email`/`updated` values.
        timezone: Display timezone for `first_touch`.
        allow_empty: Return an empty result instead of raising on zero rows.

    Returns:
        DataFrame with `CLEAN_COLUMNS`, one row per dedup key.

    Raises:
        EmptyInput: if `pdf` has no rows and `allow_empty` is False.
        InvalidTimestamp: if a record with a `user_id` has an unusable timestamp.
    """
    if len(pdf) == 0 and not allow_empty:
        raise EmptyInput()

    raw = select_raw_columns(pdf)
    kept = drop_null_user_ids(raw)
    log.info("Dropped %d records without user_id (%d remain)", len(raw) - len(kept), len(kept))

    collapsed = collapse_duplicates(coerce_timestamps(kept), policy=policy)
    log.info("Collapsed %d records into %d unique users", len(kept), len(collapsed))

    return derive_display_fields(collapsed, timezone=timezone)


def clean_users_ddf(
    ddf: Any,
    policy: str = "max",
    timezone: str = "UTC",
    allow_empty: bool = False,
) -> Any:
    """Clean raw user records held in a Dask DataFrame.

    Rows are shuffled on `user_id` before collapsing so that every duplicate
    group sits in a single partition. Timestamp errors surface when the
    result is computed.

    Returns:
        Lazy Dask DataFrame with `CLEAN_COLUMNS`.
    """
    log.info("Starting clean_users_ddf transformation")

    if int(ddf.shape[0].compute()) == 0 and not allow_empty:
        raise EmptyInput()

    # Explicit metas: Dask's inferred metas would feed fake values to
    # coerce_timestamps and trip InvalidTimestamp.
    raw_meta = select_raw_columns(ddf._meta)
    coerced_meta = coerce_timestamps(raw_meta)
    collapsed_meta = collapse_duplicates(coerced_meta, policy=policy)
    clean_meta = derive_display_fields(collapsed_meta, timezone=timezone)

    raw = ddf.map_partitions(select_raw_columns, meta=raw_meta)
    kept = raw.map_partitions(drop_null_user_ids, meta=raw_meta)
    coerced = kept.map_partitions(coerce_timestamps, meta=coerced_meta)

    collapsed = coerced.shuffle(on="user_id").map_partitions(
        collapse_duplicates, policy=policy, meta=collapsed_meta
    )
    return collapsed.map_partitions(derive_display_fields, timezone=timezone, meta=clean_meta)
