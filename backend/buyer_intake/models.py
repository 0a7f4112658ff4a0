"""
SQLAlchemy ORM models for the buyer lead CRM.

Column types are kept portable (generic Uuid, JSON with a JSONB variant on
PostgreSQL) so the same metadata runs against PostgreSQL in production and
SQLite in tests.
"""

from sqlalchemy import (
    Column, String, Boolean, Integer, Text, DateTime, JSON, Index,
    ForeignKey, CheckConstraint, Uuid
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import uuid

from buyer_intake.database import Base
from buyer_intake.schemas.enums import (
    City, PropertyType, BHK, Purpose, Timeline, Source, BuyerStatus, UserRole,
    enum_values,
)


JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _in_check(column: str, enum_cls, name: str, nullable: bool = False) -> CheckConstraint:
    values = ", ".join(f"'{v}'" for v in enum_values(enum_cls))
    clause = f"{column} IN ({values})"
    if nullable:
        clause = f"{column} IS NULL OR {clause}"
    return CheckConstraint(clause, name=name)


# ============================================================================
# USER MODEL
# ============================================================================

class User(Base):
    """Operator account (sales agent or admin)."""
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255))
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.USER.value)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        _in_check("role", UserRole, "chk_user_role"),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"


# ============================================================================
# BUYER MODELS
# ============================================================================

class Buyer(Base):
    """A real-estate buyer lead."""
    __tablename__ = "buyers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # Contact
    full_name = Column(String(80), nullable=False)
    email = Column(String(255), unique=True)
    phone = Column(String(15), nullable=False)

    # Classification
    city = Column(String(20), nullable=False)
    property_type = Column(String(20), nullable=False)
    bhk = Column(String(10))
    purpose = Column(String(10), nullable=False)

    # Budget (whole rupees)
    budget_min = Column(Integer)
    budget_max = Column(Integer)

    timeline = Column(String(20), nullable=False)
    source = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default=BuyerStatus.NEW.value)
    notes = Column(Text)

    owner_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    # Optimistic-concurrency token, advanced on every mutation
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    owner = relationship("User", lazy="selectin")
    tag_rows = relationship(
        "BuyerTag",
        order_by="BuyerTag.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        _in_check("city", City, "chk_buyer_city"),
        _in_check("property_type", PropertyType, "chk_buyer_property_type"),
        _in_check("bhk", BHK, "chk_buyer_bhk", nullable=True),
        _in_check("purpose", Purpose, "chk_buyer_purpose"),
        _in_check("timeline", Timeline, "chk_buyer_timeline"),
        _in_check("source", Source, "chk_buyer_source"),
        _in_check("status", BuyerStatus, "chk_buyer_status"),
        CheckConstraint(
            "budget_min IS NULL OR budget_max IS NULL OR budget_max >= budget_min",
            name="chk_buyer_budget_range"
        ),
        Index("idx_buyers_status_city", "status", "city"),
    )

    @property
    def tags(self):
        return [row.tag for row in self.tag_rows]

    def set_tags(self, tags):
        self.tag_rows = [BuyerTag(tag=tag, position=idx) for idx, tag in enumerate(tags)]

    def __repr__(self):
        return f"<Buyer(id={self.id}, full_name='{self.full_name}', status='{self.status}')>"


class BuyerTag(Base):
    """One tag of a buyer, kept in insertion order."""
    __tablename__ = "buyer_tags"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    buyer_id = Column(Uuid, ForeignKey("buyers.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    tag = Column(String(50), nullable=False, index=True)


class BuyerHistory(Base):
    """
    Append-only audit entry for one mutation of a buyer.

    buyer_id is a plain reference (no foreign key) so the trail survives a
    hard delete of the buyer.
    """
    __tablename__ = "buyer_history"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    buyer_id = Column(Uuid, nullable=False, index=True)
    changed_by = Column(Uuid, ForeignKey("users.id"), nullable=False)
    changed_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    diff = Column(JSONType, nullable=False, default=dict)

    __table_args__ = (
        Index("idx_history_buyer_changed", "buyer_id", "changed_at"),
    )
