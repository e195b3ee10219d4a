"""Freshness classification for expiry dates."""

import math
from datetime import date, datetime, timedelta
from enum import Enum

EXPIRING_SOON_DAYS = 30


class FreshnessStatus(str, Enum):
    """Freshness category derived from an expiry date."""

    VALID = "Valid"
    EXPIRING_SOON = "Expiring Soon"
    EXPIRED = "Expired"


def classify(
    expiry_date_iso: str | None, today: date | None = None
) -> FreshnessStatus:
    """Map an ISO expiry date to a freshness status.

    Missing or unparseable dates are treated as valid. Otherwise the number of
    days until expiry is rounded up, so a product expiring today is still
    "Expiring Soon" rather than "Expired".
    """
    expiry = parse_expiry_date(expiry_date_iso)
    if expiry is None:
        return FreshnessStatus.VALID
    reference = today or date.today()
    days_until = math.ceil((expiry - reference) / timedelta(days=1))
    if days_until < 0:
        return FreshnessStatus.EXPIRED
    if days_until <= EXPIRING_SOON_DAYS:
        return FreshnessStatus.EXPIRING_SOON
    return FreshnessStatus.VALID


def parse_expiry_date(value: str | None) -> date | None:
    """Parse an ISO date or datetime string, returning its calendar date."""
    if not value:
        return None
    cleaned = value.strip()
    if not cleaned:
        return None
    try:
        return date.fromisoformat(cleaned)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(cleaned).date()
    except ValueError:
        return None
