"""Append-only buyer history: diff capture and ordered retrieval."""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from buyer_intake.models import BuyerHistory, utcnow
from buyer_intake.services.validation import FIELDS_BY_ATTR

logger = logging.getLogger(__name__)

IMPORT_ACTION = "Imported"
DELETE_ACTION = "delete"


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    return value


def _wire_name(attr: str) -> str:
    spec = FIELDS_BY_ATTR.get(attr)
    return spec.name if spec else attr


def create_diff(values: Mapping[str, Any]) -> Dict[str, Any]:
    """Every initial field value, recorded as a change from null."""
    return {
        _wire_name(attr): {"from": None, "to": _jsonable(value)}
        for attr, value in values.items()
    }


def update_diff(before: Mapping[str, Any], after: Mapping[str, Any]) -> Dict[str, Any]:
    """Only the fields whose value actually changed."""
    diff = {}
    for attr, new_value in after.items():
        old_value = before.get(attr)
        if _jsonable(old_value) != _jsonable(new_value):
            diff[_wire_name(attr)] = {"from": _jsonable(old_value), "to": _jsonable(new_value)}
    return diff


def action_diff(action: str, **extra: Any) -> Dict[str, Any]:
    diff = {"action": action}
    diff.update({key: _jsonable(value) for key, value in extra.items()})
    return diff


class HistoryLog:
    """Writes and reads history entries on the caller's session.

    record() only stages and flushes the entry; committing is left to the
    caller so the entry lands in the same transaction as the buyer mutation.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        buyer_id: UUID,
        changed_by: UUID,
        diff: Dict[str, Any],
        changed_at: Optional[datetime] = None,
    ) -> BuyerHistory:
        entry = BuyerHistory(
            buyer_id=buyer_id,
            changed_by=changed_by,
            changed_at=changed_at or utcnow(),
            diff=diff,
        )
        self.db.add(entry)
        await self.db.flush()

        logger.debug(f"History staged for buyer {buyer_id} by {changed_by}: {list(diff.keys())}")
        return entry

    async def list_for_buyer(self, buyer_id: UUID, limit: Optional[int] = None) -> List[BuyerHistory]:
        """Newest first."""
        query = (
            select(BuyerHistory)
            .where(BuyerHistory.buyer_id == buyer_id)
            .order_by(BuyerHistory.changed_at.desc(), BuyerHistory.id)
        )
        if limit:
            query = query.limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())
