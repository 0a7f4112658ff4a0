"""Optimistic concurrency guard built on the buyer's updated_at timestamp."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from buyer_intake.errors import ConcurrencyError, ValidationError
from buyer_intake.services.validation import FieldError

logger = logging.getLogger(__name__)

TOKEN_STEP = timedelta(microseconds=1)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes coming back from the store are UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_token(raw: Any) -> datetime:
    """Parse the client's updatedAt token; it is mandatory on every update."""
    if raw is None or raw == "":
        raise ValidationError.from_field_errors(
            [FieldError("updatedAt", "updatedAt is required to update a buyer")]
        )
    if isinstance(raw, datetime):
        return as_utc(raw)
    if isinstance(raw, str):
        try:
            return as_utc(datetime.fromisoformat(raw.replace("Z", "+00:00")))
        except ValueError:
            pass
    raise ValidationError.from_field_errors(
        [FieldError("updatedAt", "updatedAt must be an ISO-8601 timestamp")]
    )


def check_token(buyer_id, stored: datetime, expected: datetime):
    """Reject the update unless the client saw exactly the stored version."""
    if as_utc(stored) != as_utc(expected):
        logger.warning(
            f"Stale update rejected for buyer {buyer_id}: "
            f"client saw {as_utc(expected).isoformat()}, stored {as_utc(stored).isoformat()}"
        )
        raise ConcurrencyError()


def next_token(previous: Optional[datetime] = None, now: Optional[datetime] = None) -> datetime:
    """Return a timestamp strictly later than the previous token."""
    now = as_utc(now or datetime.now(timezone.utc))
    if previous is None:
        return now
    floor = as_utc(previous) + TOKEN_STEP
    return now if now > floor else floor
