from __future__ import annotations

import pandas as pd
import pytest

from users_pipeline.clean.transform import (
    CLEAN_COLUMNS,
    clean_users_frame,
    coerce_timestamps,
    collapse_duplicates,
    extract_email_domain,
)
from users_pipeline.errors import EmptyInput, InvalidTimestamp


def test_example_collapses_duplicates_and_drops_null_rows() -> None:
    pdf = pd.DataFrame([
        {"user_id": "u1", "user_first_touch_timestamp": 1_000_000, "email": "a@x.com", "updated": 1},
        {"user_id": "u1", "user_first_touch_timestamp": 1_000_000, "email": None, "updated": 1},
        {"user_id": None, "user_first_touch_timestamp": None, "email": None, "updated": None},
    ])
    out = clean_users_frame(pdf)

    assert list(out.columns) == CLEAN_COLUMNS
    assert len(out) == 1
    row = out.iloc[0]
    assert row["user_id"] == "u1"
    assert row["user_first_touch_timestamp"] == 1_000_000
    assert row["email"] == "a@x.com"
    assert row["first_touch"] == pd.Timestamp("1970-01-01 00:00:01", tz="UTC")
    assert row["first_touch_date"] == "Jan 1, 1970"
    assert row["first_touch_time"] == "00:00:01"
    assert row["email_domain"] == "x.com"


def test_display_date_is_not_zero_padded() -> None:
    # 2022-01-03 13:45:07 UTC
    pdf = pd.DataFrame([
        {"user_id": "u9", "user_first_touch_timestamp": 1_641_217_507_000_000, "email": None, "updated": None},
    ])
    out = clean_users_frame(pdf)
    assert out.loc[0, "first_touch_date"] == "Jan 3, 2022"
    assert out.loc[0, "first_touch_time"] == "13:45:07"
    assert pd.isna(out.loc[0, "email_domain"])


def test_display_fields_follow_timezone() -> None:
    pdf = pd.DataFrame([{"user_id": "u1", "user_first_touch_timestamp": 0, "email": None, "updated": None}])
    out = clean_users_frame(pdf, timezone="America/New_York")
    assert out.loc[0, "first_touch_date"] == "Dec 31, 1969"
    assert out.loc[0, "first_touch_time"] == "19:00:00"


@pytest.mark.parametrize(
    "email, expected",
    [
        ("bob@sub.example.com", "sub.example.com"),
        ("a@x.com", "x.com"),
        ("odd@name@host.org", "name@host.org"),
        ("noatsign", None),
        ("trailing@", None),
        (None, None),
        (float("nan"), None),
    ],
)
def test_extract_email_domain(email: object, expected: str | None) -> None:
    assert extract_email_domain(email) == expected


def test_no_null_user_ids_and_unique_keys(dirty_users: pd.DataFrame) -> None:
    out = clean_users_frame(dirty_users)
    assert out["user_id"].notna().all()
    assert not out.duplicated(["user_id", "user_first_touch_timestamp"]).any()
    assert list(out["user_id"]) == ["u1", "u2", "u3"]


def test_max_policy_prefers_non_null(dirty_users: pd.DataFrame) -> None:
    out = clean_users_frame(dirty_users).set_index("user_id")
    assert out.loc["u1", "email"] == "a@x.com"
    assert out.loc["u3", "updated"] == 1
    assert pd.isna(out.loc["u3", "email"])


def test_merge_policies_pick_expected_value() -> None:
    pdf = pd.DataFrame([
        {"user_id": "u1", "user_first_touch_timestamp": 5, "email": "b@x.com", "updated": None},
        {"user_id": "u1", "user_first_touch_timestamp": 5, "email": None, "updated": None},
        {"user_id": "u1", "user_first_touch_timestamp": 5, "email": "c@x.com", "updated": None},
        {"user_id": "u1", "user_first_touch_timestamp": 5, "email": "a@x.com", "updated": None},
    ])
    picked = {
        policy: collapse_duplicates(coerce_timestamps(pdf), policy=policy).loc[0, "email"]
        for policy in ("max", "min", "first", "last")
    }
    assert picked == {"max": "c@x.com", "min": "a@x.com", "first": "b@x.com", "last": "a@x.com"}


def test_unknown_policy_is_rejected(dirty_users: pd.DataFrame) -> None:
    with pytest.raises(ValueError):
        clean_users_frame(dirty_users, policy="newest")


def test_same_id_with_different_timestamps_stays_separate() -> None:
    pdf = pd.DataFrame([
        {"user_id": "u1", "user_first_touch_timestamp": 1, "email": "a@x.com", "updated": 1},
        {"user_id": "u1", "user_first_touch_timestamp": 2, "email": "a@x.com", "updated": 1},
    ])
    assert len(clean_users_frame(pdf)) == 2


def test_numeric_strings_group_with_numbers() -> None:
    pdf = pd.DataFrame([
        {"user_id": "u1", "user_first_touch_timestamp": "1000000", "email": None, "updated": None},
        {"user_id": "u1", "user_first_touch_timestamp": 1_000_000, "email": "a@x.com", "updated": None},
        {"user_id": "u1", "user_first_touch_timestamp": 1e6, "email": None, "updated": None},
    ])
    out = clean_users_frame(pdf)
    assert len(out) == 1
    assert out.loc[0, "user_first_touch_timestamp"] == 1_000_000
    assert out.loc[0, "email"] == "a@x.com"


@pytest.mark.parametrize("bad_value", ["not-a-number", None, 1.5, float("inf"), True])
def test_invalid_timestamp_raises(bad_value: object) -> None:
    pdf = pd.DataFrame([
        {"user_id": "u1", "user_first_touch_timestamp": 1_000_000, "email": None, "updated": None},
        {"user_id": "u2", "user_first_touch_timestamp": bad_value, "email": None, "updated": None},
    ])
    with pytest.raises(InvalidTimestamp):
        clean_users_frame(pdf)


def test_out_of_range_timestamp_raises() -> None:
    pdf = pd.DataFrame([
        {"user_id": "u1", "user_first_touch_timestamp": 9_300_000_000_000_000, "email": None, "updated": None},
    ])
    with pytest.raises(InvalidTimestamp) as excinfo:
        clean_users_frame(pdf)
    assert excinfo.value.reason == "out of range"


def test_bad_timestamp_on_null_user_is_dropped_not_raised() -> None:
    pdf = pd.DataFrame([
        {"user_id": "u1", "user_first_touch_timestamp": 1_000_000, "email": None, "updated": None},
        {"user_id": None, "user_first_touch_timestamp": "garbage", "email": None, "updated": None},
    ])
    assert len(clean_users_frame(pdf)) == 1


def test_empty_input_raises_unless_allowed() -> None:
    empty = pd.DataFrame(columns=["user_id", "user_first_touch_timestamp", "email", "updated"])
    with pytest.raises(EmptyInput):
        clean_users_frame(empty)

    out = clean_users_frame(empty, allow_empty=True)
    assert out.empty
    assert list(out.columns) == CLEAN_COLUMNS


def test_everything_filtered_out_returns_empty_frame() -> None:
    pdf = pd.DataFrame([{"user_id": None, "user_first_touch_timestamp": None, "email": None, "updated": None}])
    out = clean_users_frame(pdf)
    assert out.empty
    assert list(out.columns) == CLEAN_COLUMNS


def test_missing_columns_are_treated_as_null() -> None:
    pdf = pd.DataFrame([
        {"user_id": "u1", "user_first_touch_timestamp": 1_000_000},
        {"user_id": "u1", "user_first_touch_timestamp": 1_000_000},
    ])
    out = clean_users_frame(pdf)
    assert len(out) == 1
    assert pd.isna(out.loc[0, "email"])
    assert pd.isna(out.loc[0, "updated"])


def test_cleaning_is_idempotent(dirty_users: pd.DataFrame) -> None:
    once = clean_users_frame(dirty_users)
    twice = clean_users_frame(once)
    pd.testing.assert_frame_equal(once, twice)


def test_boolean_timestamp_is_rejected() -> None:
    pdf = pd.DataFrame([{"user_id": "u1", "user_first_touch_timestamp": True, "email": None, "updated": None}])
    with pytest.raises(InvalidTimestamp):
        coerce_timestamps(pdf)


def test_mixed_type_updated_values_compare_as_text() -> None:
    pdf = pd.DataFrame([
        {"user_id": "u1", "user_first_touch_timestamp": 1_000_000, "email": None, "updated": 1},
        {"user_id": "u1", "user_first_touch_timestamp": 1_000_000, "email": None, "updated": "2022-01-01"},
    ])
    assert clean_users_frame(pdf).loc[0, "updated"] == "2022-01-01"
    assert clean_users_frame(pdf, policy="min").loc[0, "updated"] == 1


def test_numeric_updated_values_compare_numerically() -> None:
    pdf = pd.DataFrame([
        {"user_id": "u1", "user_first_touch_timestamp": 1_000_000, "email": None, "updated": 9},
        {"user_id": "u1", "user_first_touch_timestamp": 1_000_000, "email": None, "updated": 10},
    ])
    assert clean_users_frame(pdf).loc[0, "updated"] == 10
