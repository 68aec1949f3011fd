from __future__ import annotations

import pandas as pd

from users_pipeline.clean.transform import clean_users_frame
from users_pipeline.clean.validate import (
    at_most_one_id_per_email,
    no_duplicate_ids,
    run_checks,
    validate_partition,
)


def test_cleaned_users_pass_both_checks(dirty_users: pd.DataFrame) -> None:
    out = clean_users_frame(dirty_users)
    assert run_checks(out) == {"no_duplicate_ids": True, "at_most_one_id": True}


def test_duplicate_user_id_fails_uniqueness_check() -> None:
    pdf = pd.DataFrame({"user_id": ["u1", "u1"], "email": ["a@x.com", None]})
    assert no_duplicate_ids(pdf) is False


def test_shared_email_fails_email_check() -> None:
    pdf = pd.DataFrame({"user_id": ["u1", "u2"], "email": ["a@x.com", "a@x.com"]})
    assert at_most_one_id_per_email(pdf) is False


def test_null_emails_are_ignored_by_email_check() -> None:
    pdf = pd.DataFrame({"user_id": ["u1", "u2", "u3"], "email": [None, None, "c@x.com"]})
    assert at_most_one_id_per_email(pdf) is True


def test_same_user_repeating_an_email_counts_once() -> None:
    pdf = pd.DataFrame({"user_id": ["u1", "u1"], "email": ["a@x.com", "a@x.com"]})
    assert at_most_one_id_per_email(pdf) is True


def test_checks_pass_on_empty_set() -> None:
    empty = pd.DataFrame({"user_id": pd.Series([], dtype=object), "email": pd.Series([], dtype=object)})
    assert no_duplicate_ids(empty) is True
    assert at_most_one_id_per_email(empty) is True


def test_validate_partition_counts_bad_rows(dirty_users: pd.DataFrame) -> None:
    out = clean_users_frame(dirty_users)
    out.loc[2, "first_touch_time"] = "7pm"

    good, bad = validate_partition(out)
    assert bad == 1
    assert [r["user_id"] for r in good] == ["u1", "u2"]
    assert good[0]["email"] == "a@x.com"
    assert good[1]["email_domain"] == "sub.example.com"
