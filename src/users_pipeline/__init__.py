"""users_pipeline package.

Contains modules for loading raw "new users" records, profiling them for
nulls and duplicates, cleaning them into a deduplicated and enriched Clean
layer, and validating the result.

Architecture:
- Raw -> Clean layers stored in MongoDB (or plain files)
- Dask is used for partitioned/scalable transforms
- Pydantic models validate the Clean layer
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
