"""
Pipeline package -- NY tax credit normalization and aggregation.

Re-exports key entry points so callers can do::

    from pipeline import build_report, fetch_rows, ColumnResolver
"""

from pipeline.columns import ColumnMap, ColumnResolver
from pipeline.credits import build_report, fetch_rows

__all__ = [
    "ColumnMap",
    "ColumnResolver",
    "build_report",
    "fetch_rows",
]
