from __future__ import annotations

import pandas as pd
import pytest


@pytest.fixture
def dirty_users() -> pd.DataFrame:
    """A small users_dirty set: duplicates, a missing email, all-null rows."""
    return pd.DataFrame([
        {"user_id": "u1", "user_first_touch_timestamp": 1_000_000, "email": "a@x.com", "updated": 1},
        {"user_id": "u1", "user_first_touch_timestamp": 1_000_000, "email": None, "updated": 1},
        {"user_id": "u2", "user_first_touch_timestamp": 1_641_217_507_000_000, "email": "bob@sub.example.com", "updated": 1},
        {"user_id": "u3", "user_first_touch_timestamp": 1_641_217_508_000_000, "email": None, "updated": None},
        {"user_id": "u3", "user_first_touch_timestamp": 1_641_217_508_000_000, "email": None, "updated": 1},
        {"user_id": None, "user_first_touch_timestamp": None, "email": None, "updated": None},
        {"user_id": None, "user_first_touch_timestamp": None, "email": None, "updated": None},
        {"user_id": None, "user_first_touch_timestamp": None, "email": None, "updated": None},
    ])
