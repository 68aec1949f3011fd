"""Configuration helpers and Settings container.

This module provides a small `Settings` dataclass and `get_settings` which
reads environment variables (including a check that `MERGE_POLICY` names a
known merge policy).
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import os

from dotenv import load_dotenv

# Explicitly load .env from project root
PROJECT_ROOT = Path(__file__).resolve().parents[2]
load_dotenv(PROJECT_ROOT / ".env")

MERGE_POLICY_NAMES = ("max", "min", "first", "last")

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Container for pipeline configuration read from the environment.

    Attributes:
        mongo_uri: MongoDB connection URI.
        mongo_db: Target MongoDB database name.
        mongo_tls: Whether to connect with TLS (certifi CA bundle).
        raw_collection: Collection holding raw user records.
        clean_collection: Collection receiving cleaned user records.
        merge_policy: How conflicting `email`/`updated` values collapse.
        display_timezone: Timezone used for `first_touch` and its strings.
    """
    mongo_uri: str
    mongo_db: str
    mongo_tls: bool
    raw_collection: str
    clean_collection: str
    merge_policy: str
    display_timezone: str


def get_settings() -> Settings:
    """Read environment variables and return a frozen `Settings` object.

    Raises:
        RuntimeError: if `MERGE_POLICY` is not one of the known policies.
    """
    mongo_uri = os.getenv("MONGO_URI", "mongodb://localhost:27017")
    mongo_db = os.getenv("MONGO_DB", "users")
    mongo_tls = os.getenv("MONGO_TLS", "false").strip().lower() in _TRUTHY
    raw_collection = os.getenv("RAW_COLLECTION", "users_dirty")
    clean_collection = os.getenv("CLEAN_COLLECTION", "users_clean")
    merge_policy = os.getenv("MERGE_POLICY", "max").strip().lower()
    display_timezone = os.getenv("DISPLAY_TIMEZONE", "UTC").strip() or "UTC"

    if merge_policy not in MERGE_POLICY_NAMES:
        raise RuntimeError(
            f"MERGE_POLICY must be one of {', '.join(MERGE_POLICY_NAMES)} "
            f"(got {merge_policy!r})."
        )

    return Settings(
        mongo_uri=mongo_uri,
        mongo_db=mongo_db,
        mongo_tls=mongo_tls,
        raw_collection=raw_collection,
        clean_collection=clean_collection,
        merge_policy=merge_policy,
        display_timezone=display_timezone,
    )
