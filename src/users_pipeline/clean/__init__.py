"""Cleaning utilities for the pipeline.

Provides functions to profile raw user records, deduplicate and enrich them
into the Clean layer, validate the result and load it into MongoDB.
"""
