"""
Unit Catalog Adapter

Read-only lookup of unit identifiers, optionally scoped to a property.
Unit existence is never enforced on writes; the catalog only decides
which units a grid or count covers.
"""

from typing import List, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import StorageUnavailableError
from ..models.property_unit import PropertyUnit
from ..utils.db_helpers import is_connection_error


class UnitCatalog(Protocol):
    def list_units(self, property_id: Optional[str] = None) -> List[str]:
        ...


class SqlUnitCatalog:
    """Catalog backed by the property_units table, ordered by unit number"""

    def __init__(self, db: Session):
        self.db = db

    def list_units(self, property_id: Optional[str] = None) -> List[str]:
        query = self.db.query(PropertyUnit.id)
        if property_id:
            query = query.filter(PropertyUnit.property_id == property_id)

        try:
            rows = query.order_by(PropertyUnit.unit_number, PropertyUnit.id).all()
        except SQLAlchemyError as exc:
            if is_connection_error(exc):
                raise StorageUnavailableError("Storage unavailable while listing units") from exc
            raise
        return [row.id for row in rows]


class StaticUnitCatalog:
    """Fixed catalog, for wiring the engine without a units table"""

    def __init__(self, units_by_property: dict):
        self._units = {pid: list(units) for pid, units in units_by_property.items()}

    def list_units(self, property_id: Optional[str] = None) -> List[str]:
        if property_id is not None:
            return list(self._units.get(property_id, []))
        seen = {}
        for units in self._units.values():
            for unit_id in units:
                seen.setdefault(unit_id, None)
        return list(seen)
