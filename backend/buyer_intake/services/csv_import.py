"""
Bulk CSV import of buyers.

Each row becomes a RowOutcome (success or failure with context); the batch
never aborts on a bad row. Only structural problems (empty file, too many
rows, undecodable content) reject the whole import.
"""

import csv
import io
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from buyer_intake.config import settings
from buyer_intake.errors import BuyerIntakeError, StructuralImportError
from buyer_intake.models import User
from buyer_intake.schemas import FieldErrorResponse, ImportRowError, ImportSummary
from buyer_intake.services.buyer_store import BuyerStore
from buyer_intake.services.history_service import IMPORT_ACTION, action_diff
from buyer_intake.services.validation import BUYER_SCHEMA, FieldError, ValidationMode, validate_buyer

logger = logging.getLogger(__name__)

DUPLICATE_EMAIL = "duplicate email"
SAVE_FAILED = "Could not save this row"

# Header row is line 1, so data row i (0-based) sits on line i + 2
FIRST_DATA_ROW = 2


def _header_key(header: str) -> str:
    return re.sub(r"[^a-z0-9]", "", header.lower())


# "Full Name", "full_name" and "fullName" all resolve to fullName
HEADER_ALIASES: Dict[str, str] = {}
for _spec in BUYER_SCHEMA:
    HEADER_ALIASES[_header_key(_spec.name)] = _spec.name
    HEADER_ALIASES[_header_key(_spec.header)] = _spec.name


@dataclass
class RowOutcome:
    row: int
    data: Dict[str, Any]
    buyer_id: Optional[Any] = None
    errors: List[FieldError] = field(default_factory=list)
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.buyer_id is not None


def decode_csv(raw: bytes) -> str:
    """Decode upload bytes, tolerating a UTF-8 BOM and legacy latin-1 files."""
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


def parse_csv(raw: bytes) -> Tuple[List[str], List[Dict[str, str]]]:
    """Parse CSV bytes into headers and trimmed row dicts (blank lines skipped)."""
    text = decode_csv(raw)
    try:
        reader = csv.DictReader(io.StringIO(text))
        headers = [h.strip() for h in (reader.fieldnames or [])]
        rows = []
        for record in reader:
            cleaned = {
                (key or "").strip(): (value.strip() if isinstance(value, str) else "")
                for key, value in record.items()
                if key is not None
            }
            if not any(cleaned.values()):
                continue
            rows.append(cleaned)
    except csv.Error as e:
        raise StructuralImportError(f"Failed to parse CSV file: {e}")

    return headers, rows


def map_row(row: Dict[str, str]) -> Dict[str, str]:
    """Rename recognised CSV columns to wire field names; unknown columns are ignored."""
    mapped = {}
    for header, value in row.items():
        name = HEADER_ALIASES.get(_header_key(header))
        if name:
            mapped[name] = value
    return mapped


class BuyerImporter:
    """Imports parsed CSV rows through the single-create path."""

    def __init__(self, db: AsyncSession, max_rows: Optional[int] = None):
        self.db = db
        self.store = BuyerStore(db)
        self.max_rows = max_rows or settings.IMPORT_MAX_ROWS

    def check_structure(self, rows: List[Dict[str, str]]):
        if not rows:
            raise StructuralImportError("No records found in the CSV file")
        if len(rows) > self.max_rows:
            raise StructuralImportError(
                f"Maximum {self.max_rows} rows allowed per import (file has {len(rows)})"
            )

    async def _import_row(self, index: int, row: Dict[str, str], user: User, seen: Set[str]) -> RowOutcome:
        outcome = RowOutcome(row=index + FIRST_DATA_ROW, data=row)

        validation = validate_buyer(map_row(row), ValidationMode.IMPORT)
        if not validation.ok:
            outcome.errors = validation.errors
            outcome.message = "; ".join(f"{e.field}: {e.message}" for e in validation.errors)
            return outcome

        email = validation.values.get("email")
        if email:
            duplicate = email in seen
            # Marked seen even when rejected so later copies in the file are rejected too
            seen.add(email)
            if duplicate:
                outcome.errors = [FieldError("email", DUPLICATE_EMAIL)]
                outcome.message = DUPLICATE_EMAIL
                return outcome

        try:
            buyer = await self.store.create(
                validation.values, user, diff=action_diff(IMPORT_ACTION)
            )
        except BuyerIntakeError as e:
            outcome.message = e.message
            # The failed row was rolled back, which expired every loaded instance
            await self.db.refresh(user)
            return outcome
        except Exception as e:
            logger.error(f"Error importing row {outcome.row}: {e}")
            outcome.message = SAVE_FAILED
            await self.db.refresh(user)
            return outcome

        outcome.buyer_id = buyer.id
        return outcome

    async def import_rows(self, rows: List[Dict[str, str]], user: User) -> List[RowOutcome]:
        """
        Import rows in file order.

        Each row is awaited before the next starts, which serializes access to
        the shared seen-email set and to the session.
        """
        self.check_structure(rows)
        seen = await self.store.existing_emails()

        outcomes = []
        for index, row in enumerate(rows):
            outcomes.append(await self._import_row(index, row, user, seen))
        return outcomes

    async def import_csv(self, raw: bytes, user: User) -> ImportSummary:
        _, rows = parse_csv(raw)
        outcomes = await self.import_rows(rows, user)
        summary = summarize(outcomes)

        logger.info(
            f"CSV import by {user.email}: {summary.success_count} imported, "
            f"{summary.error_count} failed of {summary.total}"
        )
        return summary


def summarize(outcomes: List[RowOutcome]) -> ImportSummary:
    failures = [o for o in outcomes if not o.ok]
    success_count = len(outcomes) - len(failures)

    message = f"Imported {success_count} buyers successfully"
    if failures:
        message += f", with {len(failures)} errors"

    return ImportSummary(
        total=len(outcomes),
        success_count=success_count,
        error_count=len(failures),
        errors=[
            ImportRowError(
                row=o.row,
                message=o.message,
                errors=[FieldErrorResponse(field=e.field, message=e.message) for e in o.errors],
                data=o.data,
            )
            for o in failures
        ],
        message=message,
    )
