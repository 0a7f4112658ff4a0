"""
Buyer record validation engine.

All rules live in BUYER_SCHEMA, a table of FieldSpec entries shared by the
create, update and CSV import paths. Validation runs in two passes:

1. field shape and vocabulary checks for every supplied field
2. cross-field rules (BHK requirement, budget ordering) on the merged record

Errors are collected rather than raised one at a time. Shape errors short-
circuit the second pass, since cross-field rules are meaningless on values
that failed their own checks.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from email_validator import validate_email, EmailNotValidError

from buyer_intake.schemas.enums import (
    City, PropertyType, BHK, Purpose, Timeline, Source, BuyerStatus,
    RESIDENTIAL_TYPES, enum_values,
)

logger = logging.getLogger(__name__)


class ValidationMode(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    IMPORT = "import"


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message}


@dataclass(frozen=True)
class FieldSpec:
    """Declarative description of one buyer field."""
    name: str                      # wire name (camelCase)
    attr: str                      # model attribute
    kind: str                      # name | phone | email | text | enum | int | tags
    required: bool = False
    nullable: bool = False
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    choices: Tuple[str, ...] = ()
    item_max_length: Optional[int] = None
    label: Optional[str] = None    # CSV / export column header

    @property
    def header(self) -> str:
        return self.label or self.name


BUYER_SCHEMA: Tuple[FieldSpec, ...] = (
    FieldSpec("fullName", "full_name", "name", required=True,
              min_length=2, max_length=80, label="Full Name"),
    FieldSpec("email", "email", "email", nullable=True, max_length=255, label="Email"),
    FieldSpec("phone", "phone", "phone", required=True,
              min_length=10, max_length=15, label="Phone"),
    FieldSpec("city", "city", "enum", required=True,
              choices=tuple(enum_values(City)), label="City"),
    FieldSpec("propertyType", "property_type", "enum", required=True,
              choices=tuple(enum_values(PropertyType)), label="Property Type"),
    FieldSpec("bhk", "bhk", "enum", nullable=True,
              choices=tuple(enum_values(BHK)), label="BHK"),
    FieldSpec("purpose", "purpose", "enum", required=True,
              choices=tuple(enum_values(Purpose)), label="Purpose"),
    FieldSpec("budgetMin", "budget_min", "int", nullable=True, label="Budget Min"),
    FieldSpec("budgetMax", "budget_max", "int", nullable=True, label="Budget Max"),
    FieldSpec("timeline", "timeline", "enum", required=True,
              choices=tuple(enum_values(Timeline)), label="Timeline"),
    FieldSpec("source", "source", "enum", required=True,
              choices=tuple(enum_values(Source)), label="Source"),
    FieldSpec("status", "status", "enum",
              choices=tuple(enum_values(BuyerStatus)), label="Status"),
    FieldSpec("notes", "notes", "text", nullable=True, max_length=1000, label="Notes"),
    FieldSpec("tags", "tags", "tags", item_max_length=50, label="Tags"),
)

FIELDS_BY_NAME = {spec.name: spec for spec in BUYER_SCHEMA}
FIELDS_BY_ATTR = {spec.attr: spec for spec in BUYER_SCHEMA}

# CSV spellings mapped onto the internal vocabulary
TIMELINE_ALIASES = {
    "0-3m": Timeline.ZERO_TO_THREE.value,
    "3-6m": Timeline.THREE_TO_SIX.value,
    ">6m": Timeline.MORE_THAN_SIX.value,
    "exploring": Timeline.EXPLORING.value,
}
SOURCE_ALIASES = {
    "walk-in": Source.WALK_IN.value,
    "walk in": Source.WALK_IN.value,
}

PHONE_PATTERN = re.compile(r"^[0-9+\-() ]+$")
NAME_EXTRA_CHARS = frozenset(" -'")


@dataclass
class ValidationResult:
    """Normalized values keyed by model attribute, or the collected errors."""
    values: Dict[str, Any] = field(default_factory=dict)
    errors: List[FieldError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_error(self, field_name: str, message: str):
        self.errors.append(FieldError(field_name, message))


# ============================================================================
# FIELD CHECKS
# ============================================================================

def _check_name(spec: FieldSpec, value: Any, mode: ValidationMode) -> Tuple[Any, Optional[str]]:
    if not isinstance(value, str):
        return None, "Full name must be a string"
    value = " ".join(value.split())
    if len(value) < spec.min_length:
        return None, f"Full name must be at least {spec.min_length} characters"
    if len(value) > spec.max_length:
        return None, f"Full name cannot exceed {spec.max_length} characters"
    # The intake form only accepts plain personal names; imports are lenient
    if mode != ValidationMode.IMPORT:
        if not all(ch.isalpha() or ch in NAME_EXTRA_CHARS for ch in value):
            return None, "Full name may only contain letters, spaces, hyphens and apostrophes"
    return value, None


def _check_phone(spec: FieldSpec, value: Any, mode: ValidationMode) -> Tuple[Any, Optional[str]]:
    if isinstance(value, int) and not isinstance(value, bool) and mode == ValidationMode.IMPORT:
        value = str(value)
    if not isinstance(value, str):
        return None, "Phone must be a string"
    value = value.strip()
    if len(value) < spec.min_length:
        return None, f"Phone number must be at least {spec.min_length} characters"
    if len(value) > spec.max_length:
        return None, f"Phone number cannot exceed {spec.max_length} characters"
    if not PHONE_PATTERN.match(value):
        return None, "Phone number may only contain digits, spaces and + - ( )"
    return value, None


def _check_email(spec: FieldSpec, value: Any, mode: ValidationMode) -> Tuple[Any, Optional[str]]:
    if not isinstance(value, str):
        return None, "Email must be a string"
    value = value.strip()
    if len(value) > spec.max_length:
        return None, f"Email cannot exceed {spec.max_length} characters"
    try:
        checked = validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return None, "Invalid email"
    return checked.normalized.lower(), None


def _check_text(spec: FieldSpec, value: Any, mode: ValidationMode) -> Tuple[Any, Optional[str]]:
    if not isinstance(value, str):
        return None, f"{spec.name} must be a string"
    if spec.max_length and len(value) > spec.max_length:
        return None, f"Notes cannot exceed {spec.max_length} characters"
    return value, None


def _check_enum(spec: FieldSpec, value: Any, mode: ValidationMode) -> Tuple[Any, Optional[str]]:
    if isinstance(value, Enum):
        value = value.value
    if not isinstance(value, str):
        return None, f"{spec.name} must be a string"
    if mode == ValidationMode.IMPORT:
        value = value.strip()
        lowered = value.lower()
        if spec.name == "timeline" and lowered in TIMELINE_ALIASES:
            value = TIMELINE_ALIASES[lowered]
        elif spec.name == "source" and lowered in SOURCE_ALIASES:
            value = SOURCE_ALIASES[lowered]
    if value not in spec.choices:
        return None, f"Invalid {spec.name} '{value}'. Expected one of: {', '.join(spec.choices)}"
    return value, None


def _check_int(spec: FieldSpec, value: Any, mode: ValidationMode) -> Tuple[Any, Optional[str]]:
    if isinstance(value, bool):
        return None, f"{spec.name} must be a whole number"
    if isinstance(value, str) and mode == ValidationMode.IMPORT:
        cleaned = value.strip().replace(",", "")
        try:
            value = int(cleaned)
        except ValueError:
            return None, f"{spec.name} must be a whole number"
    if isinstance(value, float):
        if not value.is_integer():
            return None, f"{spec.name} must be a whole number"
        value = int(value)
    if not isinstance(value, int):
        return None, f"{spec.name} must be a whole number"
    if value < 0:
        return None, f"{spec.name} cannot be negative"
    return value, None


def _check_tags(spec: FieldSpec, value: Any, mode: ValidationMode) -> Tuple[Any, Optional[str]]:
    if isinstance(value, str) and mode == ValidationMode.IMPORT:
        value = value.split(",")
    if not isinstance(value, (list, tuple)):
        return None, "Tags must be a list of strings"

    tags: List[str] = []
    for item in value:
        if not isinstance(item, str):
            return None, "Tags must be a list of strings"
        item = item.strip()
        if not item:
            continue
        if len(item) > spec.item_max_length:
            return None, f"Each tag cannot exceed {spec.item_max_length} characters"
        if item not in tags:
            tags.append(item)
    return tags, None


CHECKS = {
    "name": _check_name,
    "phone": _check_phone,
    "email": _check_email,
    "text": _check_text,
    "enum": _check_enum,
    "int": _check_int,
    "tags": _check_tags,
}


# ============================================================================
# ENGINE
# ============================================================================

def _is_blank(value: Any) -> bool:
    return isinstance(value, str) and value.strip() == ""


def _check_fields(payload: Mapping[str, Any], mode: ValidationMode, result: ValidationResult):
    """Pass 1: shape and vocabulary checks for each field."""
    for spec in BUYER_SCHEMA:
        present = spec.name in payload
        value = payload.get(spec.name)

        # Spreadsheet cells are always present; a blank cell means "not given"
        if mode == ValidationMode.IMPORT and (value is None or _is_blank(value)):
            present = False

        if not present:
            if spec.required and mode != ValidationMode.UPDATE:
                result.add_error(spec.name, f"{spec.name} is required")
            continue

        # An explicit empty string clears a nullable field
        if spec.nullable and (value is None or _is_blank(value)):
            result.values[spec.attr] = None
            continue

        if value is None:
            if spec.required:
                result.add_error(spec.name, f"{spec.name} is required")
            else:
                result.add_error(spec.name, f"{spec.name} cannot be null")
            continue

        normalized, message = CHECKS[spec.kind](spec, value, mode)
        if message:
            result.add_error(spec.name, message)
        else:
            result.values[spec.attr] = normalized


def _check_cross_fields(merged: Dict[str, Any], result: ValidationResult):
    """Pass 2: rules spanning several fields, evaluated on the merged record."""
    property_type = merged.get("property_type")

    if property_type in RESIDENTIAL_TYPES:
        if merged.get("bhk") is None:
            result.add_error("bhk", "BHK is required for Apartment and Villa property types")
    elif merged.get("bhk") is not None or "bhk" in result.values:
        # Non-residential listings never carry a BHK, whatever was sent
        result.values["bhk"] = None

    budget_min = merged.get("budget_min")
    budget_max = merged.get("budget_max")
    if budget_min is not None and budget_max is not None and budget_max < budget_min:
        result.add_error(
            "budgetMax",
            "Maximum budget must be greater than or equal to minimum budget"
        )


def validate_buyer(
    payload: Mapping[str, Any],
    mode: ValidationMode,
    existing: Optional[Mapping[str, Any]] = None,
) -> ValidationResult:
    """
    Validate a candidate buyer record.

    Args:
        payload: wire-named fields (full record for CREATE/IMPORT, partial for UPDATE)
        mode: which path is validating; controls required fields and CSV coercions
        existing: stored attribute values, required for UPDATE so cross-field
            rules see the record as it will be after the patch

    Returns:
        ValidationResult whose values are keyed by model attribute. In UPDATE
        mode only changed/forced fields are included.
    """
    if not isinstance(payload, Mapping):
        result = ValidationResult()
        result.add_error("_root", "Request body must be an object")
        return result

    result = ValidationResult()
    _check_fields(payload, mode, result)

    if not result.ok:
        return result

    if mode == ValidationMode.UPDATE:
        merged = dict(existing or {})
        merged.update(result.values)
    else:
        result.values.setdefault("email", None)
        result.values.setdefault("bhk", None)
        result.values.setdefault("budget_min", None)
        result.values.setdefault("budget_max", None)
        result.values.setdefault("notes", None)
        result.values.setdefault("tags", [])
        merged = result.values

    _check_cross_fields(merged, result)

    if not result.ok:
        logger.debug(f"Buyer validation failed ({mode.value}): {[e.to_dict() for e in result.errors]}")

    return result
