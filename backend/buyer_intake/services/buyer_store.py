"""
Buyer record store.

Every mutation is paired with a history entry on the same session and
committed once, so the record change and its audit entry either both land or
both roll back.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Set
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from buyer_intake.errors import ConflictError, ConcurrencyError, NotFoundError, ValidationError
from buyer_intake.models import Buyer, User
from buyer_intake.rbac import check_can_modify
from buyer_intake.schemas.enums import BuyerStatus
from buyer_intake.services.concurrency import check_token, next_token, parse_token
from buyer_intake.services.history_service import (
    HistoryLog, DELETE_ACTION, action_diff, create_diff, update_diff,
)
from buyer_intake.services.validation import BUYER_SCHEMA, ValidationMode, validate_buyer

logger = logging.getLogger(__name__)

# Attributes written through a plain UPDATE; tags live in their own table
SCALAR_ATTRS = tuple(spec.attr for spec in BUYER_SCHEMA if spec.attr != "tags")


def snapshot(buyer: Buyer) -> Dict[str, Any]:
    """Current field values keyed by model attribute."""
    values = {attr: getattr(buyer, attr) for attr in SCALAR_ATTRS}
    values["tags"] = list(buyer.tags)
    return values


class BuyerStore:
    """CRUD for buyers on a request-scoped session."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.history = HistoryLog(db)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def find(self, buyer_id: UUID) -> Optional[Buyer]:
        result = await self.db.execute(
            select(Buyer)
            .where(Buyer.id == buyer_id, Buyer.is_active == True)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get(self, buyer_id: UUID) -> Buyer:
        buyer = await self.find(buyer_id)
        if buyer is None:
            raise NotFoundError()
        return buyer

    async def existing_emails(self) -> Set[str]:
        """All stored emails, soft-deleted buyers included (they still hold the address)."""
        result = await self.db.execute(select(Buyer.email).where(Buyer.email.isnot(None)))
        return {email.lower() for email in result.scalars().all()}

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(
        self,
        values: Mapping[str, Any],
        owner: User,
        diff: Optional[Dict[str, Any]] = None,
    ) -> Buyer:
        """
        Insert a validated buyer owned by `owner`.

        Args:
            values: normalized attribute values from validate_buyer
            owner: creating user, who becomes the owner
            diff: history payload; defaults to a field-by-field creation diff

        Raises:
            ConflictError: the email is already taken
        """
        # Captured up front: rollback expires ORM instances
        actor = owner.email
        fields = {attr: values.get(attr) for attr in SCALAR_ATTRS}
        fields["status"] = BuyerStatus.NEW.value
        tags = list(values.get("tags") or [])

        now = next_token()
        buyer = Buyer(
            id=uuid4(),
            owner_id=owner.id,
            created_at=now,
            updated_at=now,
            is_active=True,
            **fields,
        )
        buyer.set_tags(tags)

        if diff is None:
            diff = create_diff({**fields, "tags": tags})

        self.db.add(buyer)
        try:
            await self.db.flush()
            await self.history.record(buyer.id, owner.id, diff, changed_at=now)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"Buyer create rejected by constraint for {actor}: {e.orig}")
            raise ConflictError()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Buyer {buyer.id} created by {actor}")
        return await self.get(buyer.id)

    async def update(
        self,
        buyer_id: UUID,
        patch: Mapping[str, Any],
        expected_updated_at: Any,
        requester: User,
    ) -> Buyer:
        """
        Apply a partial update guarded by the client's updatedAt token.

        Checks run in order: existence, ownership, token, field validation.
        A patch that changes no field is not written: no history entry, and
        the token stays as it was.

        Raises:
            NotFoundError, PermissionDeniedError, ConcurrencyError,
            ValidationError, ConflictError
        """
        buyer = await self.get(buyer_id)
        check_can_modify(requester, buyer, "update")
        actor = requester.email

        expected = parse_token(expected_updated_at)
        check_token(buyer.id, buyer.updated_at, expected)

        before = snapshot(buyer)
        validation = validate_buyer(patch, ValidationMode.UPDATE, existing=before)
        if not validation.ok:
            raise ValidationError.from_field_errors(validation.errors)

        changes = validation.values
        diff = update_diff(before, changes)
        if not diff:
            logger.debug(f"Update of buyer {buyer_id} by {actor} changed nothing; not written")
            return buyer

        scalar_changes = {attr: value for attr, value in changes.items() if attr != "tags"}
        observed = buyer.updated_at
        new_token = next_token(observed)

        try:
            # Compare-and-swap: only succeeds if nobody wrote since we read
            result = await self.db.execute(
                update(Buyer)
                .where(Buyer.id == buyer.id, Buyer.updated_at == observed)
                .values(updated_at=new_token, **scalar_changes)
            )
            if result.rowcount != 1:
                raise ConcurrencyError()

            if "tags" in changes:
                buyer.set_tags(changes["tags"])
                await self.db.flush()

            await self.history.record(
                buyer.id, requester.id, diff, changed_at=new_token
            )
            await self.db.commit()
        except ConcurrencyError:
            await self.db.rollback()
            logger.warning(f"Concurrent write detected on buyer {buyer_id}; update by {actor} discarded")
            raise
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"Buyer update rejected by constraint for {actor}: {e.orig}")
            raise ConflictError()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Buyer {buyer_id} updated by {actor}: {sorted(diff)}")
        return await self.get(buyer.id)

    async def delete(self, buyer_id: UUID, requester: User, hard: bool = False):
        """
        Soft delete (default) or hard delete a buyer.

        History entries are kept in both cases.
        """
        buyer = await self.get(buyer_id)
        check_can_modify(requester, buyer, "delete")

        changed_at = next_token(buyer.updated_at)
        try:
            if hard:
                await self.db.delete(buyer)
            else:
                buyer.is_active = False
                buyer.updated_at = changed_at
            await self.db.flush()

            await self.history.record(
                buyer_id,
                requester.id,
                action_diff(DELETE_ACTION, mode="hard" if hard else "soft"),
                changed_at=changed_at,
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Buyer {buyer_id} {'hard' if hard else 'soft'} deleted by {requester.email}")
