"""
FastAPI dependencies for the availability API
"""

from typing import List, Optional

from fastapi import Depends, Header, Query
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..services.availability_engine import AvailabilityEngine
from ..services.range_index import RangeQueryIndex
from ..services.unit_catalog import SqlUnitCatalog, UnitCatalog
from .cancellation import CancellationToken

# Per-process index shared by all requests; rebuilt from storage on demand
availability_index = RangeQueryIndex()


def get_index() -> RangeQueryIndex:
    return availability_index


def get_engine(
    db: Session = Depends(get_db),
    index: RangeQueryIndex = Depends(get_index),
) -> AvailabilityEngine:
    return AvailabilityEngine(db, index=index)


def get_catalog(db: Session = Depends(get_db)) -> UnitCatalog:
    return SqlUnitCatalog(db)


def get_cancellation_token() -> CancellationToken:
    """Deadline for the storage work of one request"""
    return CancellationToken(timeout_seconds=settings.storage_timeout_seconds)


def get_actor(x_actor: Optional[str] = Header(default=None, alias="X-Actor")) -> Optional[str]:
    """Identifier recorded in updated_by; authentication happens upstream"""
    if x_actor and x_actor.strip():
        return x_actor.strip()[:100]
    return None


def get_universe(
    property_id: Optional[str] = Query(None, description="Scope to the units of one property"),
    unit_ids: Optional[List[str]] = Query(None, description="Explicit unit ids (repeatable)"),
    catalog: UnitCatalog = Depends(get_catalog),
) -> List[str]:
    """
    Units a read covers: explicit unit_ids win, otherwise the catalog's
    units (optionally scoped to a property).
    """
    if unit_ids:
        return list(dict.fromkeys(u for u in unit_ids if u))
    return catalog.list_units(property_id)
