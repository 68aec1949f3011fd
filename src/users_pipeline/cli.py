"""Command-line interface for orchestrating the pipeline.

Provides subcommands: `ingest`, `profile`, `clean`, `validate` and `all`.
Each command is implemented as a `cmd_*` function that accepts an argparse
namespace. Commands read from a file when `--input` is given and from the
configured MongoDB collections otherwise.
"""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, List, Sequence
from typing import cast, Any as TypingAny

from dotenv import load_dotenv
import pandas as pd
import dask.dataframe as dd

from users_pipeline.config import MERGE_POLICY_NAMES, get_settings
from users_pipeline.logging_config import configure_logging
from users_pipeline.db import get_client, get_db

# INGEST
from users_pipeline.ingest.load_raw import load_raw_to_mongo, read_raw_users

# CLEAN
from users_pipeline.clean.profile import profile_users
from users_pipeline.clean.transform import clean_users_ddf
from users_pipeline.clean.load_clean import load_clean_to_mongo, write_clean_file
from users_pipeline.clean.validate import run_checks

log = logging.getLogger(__name__)


# --------------------------------------------------
# Helpers
# --------------------------------------------------
def _load_collection_to_ddf(
    collection: Any,
    projection: dict[str, Any],
    batch_size: int = 50_000,
) -> Any:
    """Safely load a MongoDB collection into a Dask DataFrame using batched reads."""
    cursor = collection.find({}, projection).batch_size(batch_size)

    pdf_batches: List[pd.DataFrame] = []
    buffer: List[dict[str, Any]] = []

    for doc in cursor:
        buffer.append(doc)
        if len(buffer) >= batch_size:
            pdf_batches.append(pd.DataFrame(buffer))
            buffer.clear()

    if buffer:
        pdf_batches.append(pd.DataFrame(buffer))

    dd_mod = cast(TypingAny, dd)
    if not pdf_batches:
        return dd_mod.from_pandas(pd.DataFrame(), npartitions=1)

    pdf = pd.concat(pdf_batches, ignore_index=True)
    nparts = max(1, len(pdf) // 200_000)

    log.info("Loaded %d documents into %d Dask partitions", len(pdf), nparts)
    return dd_mod.from_pandas(pdf, npartitions=nparts)


def _raw_ddf(args: argparse.Namespace) -> Any:
    """Raw users from `--input` if given, else from the raw collection."""
    if args.input is not None:
        return read_raw_users(args.input)

    s = get_settings()
    client = get_client(s.mongo_uri, tls=s.mongo_tls)
    try:
        # the loader materializes the cursor, so the client can close here
        return _load_collection_to_ddf(get_db(client, s.mongo_db)[s.raw_collection], {"_id": False})
    finally:
        client.close()


def _clean_frame(args: argparse.Namespace) -> pd.DataFrame:
    """Clean users from `--input` if given, else from the clean collection."""
    if args.input is not None:
        suffix = args.input.suffix.lower()
        if suffix == ".parquet":
            return pd.read_parquet(args.input)
        if suffix == ".csv":
            return pd.read_csv(args.input, dtype={"user_id": str, "email": str})
        raise ValueError(f"Unsupported clean file format {suffix!r}")

    s = get_settings()
    client = get_client(s.mongo_uri, tls=s.mongo_tls)
    try:
        return _load_collection_to_ddf(get_db(client, s.mongo_db)[s.clean_collection], {"_id": False}).compute()
    finally:
        client.close()


# --------------------------------------------------
# INGEST
# --------------------------------------------------
def cmd_ingest(args: argparse.Namespace) -> None:
    """Load a raw users file into the raw collection, replacing its contents."""
    if args.input is None:
        raise RuntimeError("ingest needs --input PATH")

    ddf = read_raw_users(args.input)
    load_raw_to_mongo(ddf)
    log.info("Ingest completed.")


# --------------------------------------------------
# PROFILE
# --------------------------------------------------
def cmd_profile(args: argparse.Namespace) -> dict[str, Any]:
    """Log null and duplicate counts for the raw users."""
    pdf = _raw_ddf(args).compute()
    profile = profile_users(pdf)
    for key, value in profile.items():
        log.info("%-22s %s", key, value)
    return profile


# --------------------------------------------------
# CLEAN
# --------------------------------------------------
def cmd_clean(args: argparse.Namespace) -> None:
    """Run the cleaning pipeline and write the result.

    The result goes to `--output` when given, else to the clean collection.
    `--policy` and `--timezone` override `MERGE_POLICY` and `DISPLAY_TIMEZONE`.
    """
    s = get_settings()
    policy = args.policy or s.merge_policy
    tz = args.timezone or s.display_timezone

    ddf = _raw_ddf(args)
    ddf_clean = clean_users_ddf(
        ddf,
        policy=policy,
        timezone=tz,
        allow_empty=args.allow_empty,
    )

    if args.output is not None:
        write_clean_file(ddf_clean, args.output)
        return

    good, bad = load_clean_to_mongo(ddf_clean)
    log.info("%s load finished (good=%d bad=%d)", s.clean_collection, good, bad)


# --------------------------------------------------
# VALIDATE
# --------------------------------------------------
def cmd_validate(args: argparse.Namespace) -> bool:
    """Run the uniqueness checks over the clean users.

    Returns:
        True when every check passed.
    """
    pdf = _clean_frame(args)
    if pdf.empty:
        log.warning("Clean users are empty; checks pass vacuously.")
    results = run_checks(pdf)
    return all(results.values())


# --------------------------------------------------
# ALL
# --------------------------------------------------
def cmd_all(args: argparse.Namespace) -> bool:
    """Convenience: run ingest -> profile -> clean -> validate against MongoDB."""
    cmd_ingest(args)
    stage_args = argparse.Namespace(**{**vars(args), "input": None, "output": None})
    cmd_profile(stage_args)
    cmd_clean(stage_args)
    return cmd_validate(stage_args)


# --------------------------------------------------
# CLI
# --------------------------------------------------
def _add_clean_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("--policy", choices=MERGE_POLICY_NAMES, default=None)
    p.add_argument("--timezone", default=None)
    p.add_argument("--allow-empty", action="store_true")


def build_parser() -> argparse.ArgumentParser:
    """Build and return the top-level argument parser for the CLI.

    Returns:
        Configured argparse.ArgumentParser instance.
    """
    p = argparse.ArgumentParser(prog="users_pipeline")
    p.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    p_ingest = sub.add_parser("ingest")
    p_ingest.add_argument("--input", type=Path, required=True)

    p_profile = sub.add_parser("profile")
    p_profile.add_argument("--input", type=Path, default=None)

    p_clean = sub.add_parser("clean")
    p_clean.add_argument("--input", type=Path, default=None)
    p_clean.add_argument("--output", type=Path, default=None)
    _add_clean_options(p_clean)

    p_validate = sub.add_parser("validate")
    p_validate.add_argument("--input", type=Path, default=None)

    p_all = sub.add_parser("all")
    p_all.add_argument("--input", type=Path, required=True)
    _add_clean_options(p_all)

    return p


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point: parse args, configure logging and dispatch commands."""
    load_dotenv()
    args = build_parser().parse_args(argv)
    configure_logging(Path("logs/pipeline.log"), level=getattr(logging, args.log_level))

    if args.cmd == "ingest":
        cmd_ingest(args)
    elif args.cmd == "profile":
        cmd_profile(args)
    elif args.cmd == "clean":
        cmd_clean(args)
    elif args.cmd == "validate":
        if not cmd_validate(args):
            raise SystemExit(1)
    elif args.cmd == "all":
        if not cmd_all(args):
            raise SystemExit(1)
    else:
        raise SystemExit(2)


if __name__ == "__main__":
    main()
