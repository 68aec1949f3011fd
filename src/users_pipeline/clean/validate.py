"""Validation utilities for the Clean layer.

Two set-level checks confirm the properties the cleaning pipeline promises:
each `user_id` appears once, and each email belongs to at most one user.
`validate_partition` additionally checks every record against the Pydantic
`CleanUser` model before it is loaded.
"""
from __future__ import annotations

import logging
from typing import Any

import pandas as pd
from pydantic import ValidationError

from users_pipeline.models import CleanUser, plain_record

log = logging.getLogger(__name__)


def no_duplicate_ids(pdf: pd.DataFrame) -> bool:
    """True when the largest group per `user_id` has at most one row."""
    if pdf.empty:
        return True
    row_count = pdf.groupby("user_id").size()
    return bool(row_count.max() <= 1)


def at_most_one_id_per_email(pdf: pd.DataFrame) -> bool:
    """True when every non-null email maps to at most one distinct `user_id`."""
    with_email = pdf[pdf["email"].notna()]
    if with_email.empty:
        return True
    user_id_count = with_email.groupby("email")["user_id"].nunique()
    return bool(user_id_count.max() <= 1)


def run_checks(pdf: pd.DataFrame) -> dict[str, bool]:
    """Run every set-level check and log the outcome.

    Returns:
        Mapping of check name to whether it passed.
    """
    results = {
        "no_duplicate_ids": no_duplicate_ids(pdf),
        "at_most_one_id": at_most_one_id_per_email(pdf),
    }
    for name, passed in results.items():
        if passed:
            log.info("check %s passed", name)
        else:
            log.warning("check %s FAILED", name)
    return results


def validate_partition(pdf: pd.DataFrame) -> tuple[list[dict[str, Any]], int]:
    """Validate a pandas partition of cleaned records using Pydantic.

    Missing markers (NaN, NaT, pd.NA) become None before validation.

    Args:
        pdf: Pandas DataFrame for the partition.

    Returns:
        A tuple of (list_of_validated_records, bad_count).
    """
    good: list[dict[str, Any]] = []
    bad = 0

    for rec in pdf.to_dict(orient="records"):
        rec = plain_record(rec)
        try:
            m = CleanUser.model_validate(rec)
            good.append(m.model_dump(mode="python"))
        except ValidationError as e:
            log.debug("Rejected record %r: %s", rec.get("user_id"), e)
            bad += 1

    return good, bad
