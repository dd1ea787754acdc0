"""Shared utilities for the NY credits service."""

# Pattern definitions
from utils.patterns import ROLE_PATTERNS, REQUIRED_ROLES

# String utilities
from utils.strings import safe_float, coerce_year, clean_label

# Errors
from utils.errors import (
    CreditsError,
    RemoteQueryError,
    RemoteQueryFailed,
    RemoteQueryExhausted,
    ColumnResolutionError,
)

# Caching
from utils.cache import QueryCache

# Configuration
from utils.config import Config, AppConfig

# HTTP utilities
from utils.http import RetryStrategy, SessionManager, SocrataClient

# Query builders
from utils.query import (
    FilterParams,
    parse_filter_params,
    build_where_clause,
    build_raw_select,
    build_raw_query,
    quote_literal,
    quote_identifier,
)

__all__ = [
    # Patterns
    "ROLE_PATTERNS",
    "REQUIRED_ROLES",
    # Strings
    "safe_float",
    "coerce_year",
    "clean_label",
    # Errors
    "CreditsError",
    "RemoteQueryError",
    "RemoteQueryFailed",
    "RemoteQueryExhausted",
    "ColumnResolutionError",
    # Cache
    "QueryCache",
    # Config
    "Config",
    "AppConfig",
    # HTTP
    "RetryStrategy",
    "SessionManager",
    "SocrataClient",
    # Query
    "FilterParams",
    "parse_filter_params",
    "build_where_clause",
    "build_raw_select",
    "build_raw_query",
    "quote_literal",
    "quote_identifier",
]
