"""
Column discovery for the tax-credit dataset.

The upstream dataset does not guarantee stable field names, so each semantic
role (year, claimed, used, program, taxpayer_type) is mapped to an actual
field by regex heuristics from ``utils.patterns.ROLE_PATTERNS``.

Resolution order:
  1. Dataset metadata (``/api/views/<id>.json``) column fieldName/name pairs.
     A metadata failure is logged and treated as zero candidates.
  2. If year, claimed, used or program is still missing, a one-row sample
     query (``SELECT * LIMIT 1``) fills in only the missing roles from the
     sample's keys.
  3. No year column after the sample is fatal (ColumnResolutionError).
     Any other role may stay unresolved; downstream treats it as zero/absent.

The result is cached on the resolver for the life of the process; call
``reset()`` to force a fresh discovery.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, asdict
from typing import Any, Iterable, Mapping, Sequence

from pipeline.normalize import parse_response
from utils.errors import ColumnResolutionError, RemoteQueryError
from utils.http import SocrataClient
from utils.patterns import REQUIRED_ROLES, ROLE_PATTERNS

logger = logging.getLogger(__name__)

SAMPLE_STATEMENT = "SELECT * LIMIT 1"

# A candidate is either a metadata column ({"fieldName", "name"}) or a bare key
Candidate = Mapping[str, Any] | str


@dataclass(frozen=True)
class ColumnMap:
    """Resolved field names for each semantic role."""

    year: str
    claimed: str | None = None
    used: str | None = None
    program: str | None = None
    taxpayer_type: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return asdict(self)


def _candidate_field(candidate: Candidate, pattern: re.Pattern) -> str | None:
    """Return the field name *candidate* contributes if it matches *pattern*."""
    if isinstance(candidate, str):
        return candidate if pattern.search(candidate) else None
    field_name = candidate.get("fieldName") or ""
    name = candidate.get("name") or ""
    if field_name and pattern.search(field_name):
        return field_name
    if name and pattern.search(name):
        return field_name or name
    return None


def find_column(
    candidates: Sequence[Candidate],
    patterns: Iterable[re.Pattern],
    exclude: Iterable[str] = (),
) -> str | None:
    """Return the first field matched by the highest-priority pattern.

    Every candidate is tried against a pattern before the next pattern is
    considered.  Fields in *exclude* are skipped.
    """
    taken = set(exclude)
    for pattern in patterns:
        for candidate in candidates:
            field = _candidate_field(candidate, pattern)
            if field and field not in taken:
                return field
    return None


def match_roles(
    candidates: Sequence[Candidate],
    known: Mapping[str, str | None] | None = None,
) -> dict[str, str | None]:
    """Fill every role not already present in *known* from *candidates*."""
    resolved: dict[str, str | None] = dict(known or {})
    for role, patterns in ROLE_PATTERNS.items():
        if resolved.get(role):
            continue
        taken = [v for v in resolved.values() if v]
        resolved[role] = find_column(candidates, patterns, exclude=taken)
    return resolved


class ColumnResolver:
    """Resolves and memoizes the dataset's ColumnMap.

    Args:
        client: Socrata client used for the metadata and sample requests.
    """

    def __init__(self, client: SocrataClient) -> None:
        self.client = client
        self._cached: ColumnMap | None = None
        self._lock = threading.Lock()

    @property
    def cached(self) -> ColumnMap | None:
        return self._cached

    def reset(self) -> None:
        """Drop the cached mapping so the next resolve() rediscovers it."""
        with self._lock:
            self._cached = None

    def resolve(self) -> ColumnMap:
        """Return the ColumnMap, discovering it on the first call.

        Raises:
            ColumnResolutionError: no year column could be identified.
        """
        cached = self._cached
        if cached is not None:
            return cached
        with self._lock:
            if self._cached is None:
                self._cached = self._discover()
            return self._cached

    def _metadata_columns(self) -> list[Mapping[str, Any]]:
        try:
            metadata = self.client.fetch_metadata()
        except RemoteQueryError as exc:
            logger.warning("Unable to load Socrata metadata: %s", exc)
            return []
        columns = metadata.get("columns") or []
        return [c for c in columns if isinstance(c, Mapping)]

    def _sample_keys(self) -> list[str]:
        try:
            payload = self.client.query(SAMPLE_STATEMENT)
        except RemoteQueryError as exc:
            logger.warning("Unable to infer columns from sample Socrata row: %s", exc)
            return []
        records = list(parse_response(payload).records())
        return list(records[0].keys()) if records else []

    def _discover(self) -> ColumnMap:
        roles = match_roles(self._metadata_columns())

        missing = [r for r in REQUIRED_ROLES if not roles.get(r)]
        if missing:
            logger.info("Columns unresolved from metadata (%s); sampling one row",
                        ", ".join(missing))
            roles = match_roles(self._sample_keys(), known=roles)

        if not roles.get("year"):
            raise ColumnResolutionError(
                "Unable to identify year column in Socrata dataset"
            )

        column_map = ColumnMap(
            year=roles["year"],
            claimed=roles.get("claimed"),
            used=roles.get("used"),
            program=roles.get("program"),
            taxpayer_type=roles.get("taxpayer_type"),
        )
        logger.info("Resolved dataset columns: %s", column_map.to_dict())
        return column_map
