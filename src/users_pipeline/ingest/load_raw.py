"""Raw-layer reading and loading utilities.

Raw user exports are read from CSV, JSON-lines or Parquet into a Dask
DataFrame, and can be loaded into the raw MongoDB collection partition by
partition. Raw records have no unique key (duplicates are expected), so they
are inserted rather than upserted.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, List

import pandas as pd
import dask.dataframe as dd
from pymongo.errors import PyMongoError

from users_pipeline.config import get_settings
from users_pipeline.db import get_client, get_db
from users_pipeline.models import plain_record

log = logging.getLogger(__name__)

BATCH_SIZE = 1000

RAW_CSV_DTYPES = {"user_id": object, "email": object, "user_first_touch_timestamp": object}


def _chunks(iterable: List[dict[str, Any]], size: int) -> Iterable[List[dict[str, Any]]]:
    """Chunk a list of dicts into batches of `size`."""
    for i in range(0, len(iterable), size):
        yield iterable[i : i + size]


def read_raw_users(path: Path) -> Any:
    """Read a raw users file into a Dask DataFrame.

    The identifier, email and timestamp CSV columns are read as strings so
    malformed timestamps reach the cleaning step intact instead of failing
    dtype inference. `updated` keeps its inferred type so numeric markers
    compare numerically.

    Args:
        path: `.csv`, `.json`/`.jsonl` (JSON lines) or `.parquet` file.

    Returns:
        Dask DataFrame with whatever raw columns the file holds.
    """
    suffix = path.suffix.lower()
    if suffix == ".csv":
        ddf = dd.read_csv(str(path), dtype=RAW_CSV_DTYPES)
    elif suffix in (".json", ".jsonl"):
        ddf = dd.read_json(str(path), orient="records", lines=True)
    elif suffix == ".parquet":
        ddf = dd.read_parquet(str(path))
    else:
        raise ValueError(f"Unsupported input format {suffix!r} for {path}")

    log.info("Reading raw users from %s (%d partitions)", path, ddf.npartitions)
    return ddf


def _load_partition(pdf: pd.DataFrame) -> int:
    """Insert a pandas partition into the raw MongoDB collection.

    Notes:
        This function is executed inside Dask workers and therefore creates
        and closes its own MongoDB connection.

    Returns:
        The number of documents inserted from this partition.
    """
    if len(pdf) == 0:
        return 0

    settings = get_settings()
    records = [plain_record(rec) for rec in pdf.to_dict(orient="records")]
    inserted = 0

    client = get_client(settings.mongo_uri, tls=settings.mongo_tls)
    try:
        collection = get_db(client, settings.mongo_db)[settings.raw_collection]
        for batch in _chunks(records, BATCH_SIZE):
            try:
                result = collection.insert_many(batch, ordered=False)
                inserted += len(result.inserted_ids)
            except PyMongoError as e:
                log.warning("Insert failed for one batch: %s", e)
                continue
    finally:
        client.close()
    return inserted


def load_raw_to_mongo(ddf: Any, replace: bool = True) -> int:
    """Load a Dask DataFrame into the raw collection using partitioned inserts.

    Args:
        ddf: Dask DataFrame with raw user columns.
        replace: Empty the raw collection first, so a re-ingest does not
            double every record.

    Returns:
        Total number of documents inserted.
    """
    settings = get_settings()

    if replace:
        client = get_client(settings.mongo_uri, tls=settings.mongo_tls)
        deleted = get_db(client, settings.mongo_db)[settings.raw_collection].delete_many({})
        client.close()
        log.info("Cleared %d documents from %s", deleted.deleted_count, settings.raw_collection)

    row_count = ddf.shape[0].compute()
    log.info("Loading %d rows into %s collection...", row_count, settings.raw_collection)

    counts = ddf.map_partitions(
        _load_partition,
        meta=("inserted", "int"),
    ).compute()

    total = int(counts.sum())
    log.info("Loaded %d documents into %s.", total, settings.raw_collection)
    return total
