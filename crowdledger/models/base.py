"""Base configurations and common column types for database models."""

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

# Ledger-side monetary precision. Chain amounts carry 18 decimals; ledger
# amounts carry 8, which covers every amount the platform accepts.
MONEY_DIGITS = 28
MONEY_PLACES = 8

# Ownership percentages are stored unrounded to 10 places
PERCENT_DIGITS = 16
PERCENT_PLACES = 10
