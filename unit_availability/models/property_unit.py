"""
Property Unit Model

Read-only view of the unit catalog. Rows are owned by the property
catalog; this service only lists them to scope availability queries.
"""

import uuid
from sqlalchemy import Column, String, Integer, DateTime, Index

from ..database import Base
from .unit_availability import utcnow


class PropertyUnit(Base):
    __tablename__ = "property_units"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    property_id = Column(String(36), nullable=False)
    unit_number = Column(String(50), nullable=False)
    floor_number = Column(Integer, nullable=True)
    unit_type = Column(String(50), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('ix_property_units_property', 'property_id', 'unit_number'),
    )

    def __repr__(self):
        return f"<PropertyUnit {self.unit_number} ({self.property_id})>"
