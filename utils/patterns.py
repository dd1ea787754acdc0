"""Pre-compiled regex patterns for the NY credits service.

All patterns are compiled once at module import.

``ROLE_PATTERNS`` is the column-discovery table used by
``pipeline.columns``: for each semantic role, an ordered tuple of matchers,
most specific first.  Resolution tries every candidate column against the
first matcher before moving on to the next one, so a more specific matcher
always beats a generic one regardless of column order.

Usage:
    from utils.patterns import ROLE_PATTERNS

    for pattern in ROLE_PATTERNS["year"]:
        ...
"""

import re

# Calendar/tax/fiscal year columns: "calendar_year", "Tax Year", "fiscal_year_end"
QUALIFIED_YEAR = re.compile(r'(calendar|tax|fiscal).*year', re.IGNORECASE)

# Bare year columns: "year", "report_year", "Year"
GENERIC_YEAR = re.compile(r'\byear\b|_year$|^year', re.IGNORECASE)

CLAIMED = re.compile(r'claimed', re.IGNORECASE)
APPROVED = re.compile(r'approved', re.IGNORECASE)
AMOUNT = re.compile(r'amount', re.IGNORECASE)
VALUE = re.compile(r'value', re.IGNORECASE)

USED = re.compile(r'used|utilized|applied', re.IGNORECASE)

PROGRAM = re.compile(r'program', re.IGNORECASE)
CREDIT_NAME = re.compile(r'credit.*name', re.IGNORECASE)
CREDIT_TYPE = re.compile(r'credit.*type', re.IGNORECASE)
DESCRIPTION = re.compile(r'description', re.IGNORECASE)

TAXPAYER_TYPE = re.compile(r'(taxpayer|entity).*type', re.IGNORECASE)

# Role order matters: a column claimed by an earlier role is not offered to
# later ones.
ROLE_PATTERNS: dict[str, tuple[re.Pattern, ...]] = {
    "year": (QUALIFIED_YEAR, GENERIC_YEAR),
    "claimed": (CLAIMED, APPROVED, AMOUNT, VALUE),
    "used": (USED,),
    "program": (PROGRAM, CREDIT_NAME, CREDIT_TYPE, DESCRIPTION),
    "taxpayer_type": (TAXPAYER_TYPE,),
}

# Roles that trigger the sample-row fallback when unresolved
REQUIRED_ROLES = ("year", "claimed", "used", "program")

# Double quotes wrapped around field identifiers in envelope metadata
IDENTIFIER_QUOTES = re.compile(r'"')

# Integral float strings produced by some exports: "2020.0", "2021.00"
INTEGRAL_FLOAT = re.compile(r'^-?\d+\.0*$')

# Leading four-digit year of a date or timestamp: "2020-01-01T00:00:00.000"
LEADING_YEAR = re.compile(r'^\s*(\d{4})\b')

# Currency symbols for stripping during numeric conversion
CURRENCY_SYMBOLS = re.compile(r'[\$€£¥₹₽]')
