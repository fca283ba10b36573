"""
Unit Availability Model

Sparse per-day availability exceptions for each unit.
A missing (unit_id, date) row means the unit is available on that day.
"""

import uuid
import enum
from datetime import datetime, timezone
from sqlalchemy import Column, String, Date, DateTime, Integer, Text, Index, UniqueConstraint, CheckConstraint

from ..database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp for DateTime columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class AvailabilityStatus(str, enum.Enum):
    """Bookable state of a unit on a single day"""
    AVAILABLE = "available"
    BOOKED = "booked"
    MAINTENANCE = "maintenance"
    OUT_OF_SERVICE = "out_of_service"
    RESERVED = "reserved"


DEFAULT_STATUS = AvailabilityStatus.AVAILABLE


class UnitAvailability(Base):
    """
    Daily availability state for a unit.

    Only exceptions need to be stored; the unique constraint on
    (unit_id, date) is the conflict target for upserts.
    """
    __tablename__ = "unit_availability"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Unit reference (advisory, the catalog lives elsewhere)
    unit_id = Column(String(36), nullable=False)

    date = Column(Date, nullable=False)

    status = Column(String(20), nullable=False, default=DEFAULT_STATUS.value)
    notes = Column(Text, nullable=True)
    maintenance_type = Column(String(100), nullable=True)

    # Audit
    updated_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Bumped on every write, checked only when callers pass expected_version
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint('unit_id', 'date', name='uq_unit_availability_unit_date'),
        CheckConstraint(
            "status IN ('available', 'booked', 'maintenance', 'out_of_service', 'reserved')",
            name='ck_unit_availability_status',
        ),
        Index('ix_unit_availability_date', 'date'),
        Index('ix_unit_availability_date_status', 'date', 'status'),
    )

    def __repr__(self):
        return f"<UnitAvailability {self.unit_id} {self.date} {self.status}>"
