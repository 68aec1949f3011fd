"""Load cleaned users into MongoDB with partitioned upserts, or into a file.

Module notes:
- Each Dask partition is validated and upserted independently.
- Records are upserted on the dedup key `(user_id, user_first_touch_timestamp)`,
  so re-loading the same clean set is a no-op.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Tuple
from typing import cast, Any as TypingAny

import pandas as pd
from dask import delayed, compute  # type: ignore[attr-defined]

from users_pipeline.clean.transform import DEDUP_KEY
from users_pipeline.clean.validate import validate_partition
from users_pipeline.config import get_settings
from users_pipeline.db import bulk_upsert, get_client, get_db

log = logging.getLogger(__name__)

BATCH_SIZE = 1000


def _process_partition(pdf: pd.DataFrame) -> Tuple[int, int]:
    """Runs inside a worker (delayed task).

    Validates the partition against `CleanUser`, upserts the valid records
    into the clean collection and returns `(good_rows, bad_rows)`.
    """
    if pdf is None or len(pdf) == 0:
        return 0, 0

    docs, bad = validate_partition(pdf)
    if not docs:
        return 0, bad

    cleaned_ts = datetime.now(timezone.utc)
    for doc in docs:
        doc["cleaned_ts"] = cleaned_ts

    settings = get_settings()
    client = get_client(settings.mongo_uri, tls=settings.mongo_tls)
    try:
        collection = get_db(client, settings.mongo_db)[settings.clean_collection]
        good = bulk_upsert(collection, docs, DEDUP_KEY, batch_size=BATCH_SIZE)
    finally:
        client.close()

    return good, bad


def load_clean_to_mongo(ddf: Any) -> tuple[int, int]:
    """Driver function.

    Uses `to_delayed()` so each partition is validated and written by its
    own task.

    Returns:
        `(good_total, bad_total)` across all partitions.
    """
    log.info("Loading clean users into MongoDB...")

    delayed_parts = ddf.to_delayed()
    tasks = [delayed(_process_partition)(part) for part in delayed_parts]

    # `compute` is untyped in our environment; cast to Any before calling
    results = cast(TypingAny, compute)(*tasks)

    good_total = sum(g for g, _ in results)
    bad_total = sum(b for _, b in results)

    log.info("Clean load complete: good=%d bad=%d", good_total, bad_total)
    return int(good_total), int(bad_total)


def write_clean_file(ddf: Any, path: Path) -> int:
    """Materialize the clean set and write it to a single `.parquet` or `.csv` file.

    Returns:
        Number of rows written.
    """
    suffix = path.suffix.lower()
    if suffix not in (".parquet", ".csv"):
        raise ValueError(f"Unsupported output format {suffix!r}; use .parquet or .csv")

    pdf = ddf.compute() if hasattr(ddf, "compute") else ddf
    pdf = pdf.sort_values(DEDUP_KEY).reset_index(drop=True)

    path.parent.mkdir(parents=True, exist_ok=True)
    if suffix == ".parquet":
        pdf.to_parquet(path, index=False)
    else:
        pdf.to_csv(path, index=False)

    log.info("Wrote %d clean users to %s", len(pdf), path)
    return len(pdf)
