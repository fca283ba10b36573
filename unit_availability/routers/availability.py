from fastapi import APIRouter, Depends, Query, Request
from typing import List, Optional

from ..config import settings
from ..errors import ValidationError
from ..models.unit_availability import AvailabilityStatus
from ..schemas.availability import (
    AvailabilityRecord,
    BulkStatusUpdate,
    BulkUpdateResponse,
    ClearResponse,
    CountResponse,
    DailySummary,
    GridResponse,
    PointStatusUpdate,
    UnitFilterResponse,
)
from ..services.availability_engine import AvailabilityEngine
from ..services.unit_catalog import UnitCatalog
from ..utils.cancellation import CancellationToken
from ..utils.dependencies import (
    get_actor,
    get_cancellation_token,
    get_catalog,
    get_engine,
    get_universe,
)
from ..utils.rate_limiter import limiter, get_rate_limit
from ..utils.validators import parse_date, parse_status, validate_range

router = APIRouter(prefix="/api/availability", tags=["Availability"])


@router.get("/units", response_model=List[str])
async def list_units(
    property_id: Optional[str] = Query(None, description="Only units of this property"),
    catalog: UnitCatalog = Depends(get_catalog),
):
    """Unit ids from the catalog, ordered by unit number"""
    return catalog.list_units(property_id)


@router.get("/range", response_model=List[AvailabilityRecord])
async def get_range(
    date_from: str = Query(..., description="YYYY-MM-DD, inclusive"),
    date_to: str = Query(..., description="YYYY-MM-DD, inclusive"),
    universe: List[str] = Depends(get_universe),
    engine: AvailabilityEngine = Depends(get_engine),
    cancel: CancellationToken = Depends(get_cancellation_token),
):
    """
    Stored records only. Cells without a record are available.
    """
    start, end = validate_range(date_from, date_to)
    return engine.repository.query_range(universe, start, end, cancel=cancel)


@router.get("/grid", response_model=GridResponse)
async def get_grid(
    start: str = Query(..., description="First date shown, YYYY-MM-DD"),
    days: Optional[int] = Query(default=None, ge=1, description="Number of days shown"),
    universe: List[str] = Depends(get_universe),
    engine: AvailabilityEngine = Depends(get_engine),
    cancel: CancellationToken = Depends(get_cancellation_token),
):
    """Calendar grid: one row per unit, one cell per date, defaults applied"""
    return engine.grid(universe, parse_date(start, "start"), days or settings.grid_default_days, cancel=cancel)


@router.get("/count", response_model=CountResponse)
async def get_count(
    date: str = Query(..., description="YYYY-MM-DD"),
    universe: List[str] = Depends(get_universe),
    engine: AvailabilityEngine = Depends(get_engine),
):
    """Available units and per-status counts for one date"""
    day = parse_date(date)
    by_status = engine.count_by_status(day, universe)
    return CountResponse(
        date=day,
        universe_size=len(universe),
        available=by_status[AvailabilityStatus.AVAILABLE],
        by_status=by_status,
    )


@router.get("/summary", response_model=List[DailySummary])
async def get_summary(
    date_from: str = Query(...),
    date_to: str = Query(...),
    universe: List[str] = Depends(get_universe),
    engine: AvailabilityEngine = Depends(get_engine),
    cancel: CancellationToken = Depends(get_cancellation_token),
):
    """Per-date counts over a window (calendar headers)"""
    start, end = validate_range(date_from, date_to)
    if (end - start).days + 1 > settings.grid_max_days:
        raise ValidationError(
            f"Summary window is limited to {settings.grid_max_days} days", field="date_to"
        )
    if universe:
        engine.load_window(universe, start, end, cancel=cancel)
    return engine.daily_summary(universe, start, end)


@router.get("/filter", response_model=UnitFilterResponse)
async def filter_units(
    date: str = Query(...),
    status: str = Query(..., description="Effective status to match"),
    universe: List[str] = Depends(get_universe),
    engine: AvailabilityEngine = Depends(get_engine),
):
    """Units whose effective status on the date matches"""
    day = parse_date(date)
    wanted = parse_status(status)
    return UnitFilterResponse(
        date=day,
        status=wanted,
        unit_ids=engine.units_with_status(day, universe, wanted),
    )


@router.post("/bulk", response_model=BulkUpdateResponse)
@limiter.limit(get_rate_limit("availability_bulk"))
async def bulk_update(
    request: Request,
    payload: BulkStatusUpdate,
    engine: AvailabilityEngine = Depends(get_engine),
    actor: Optional[str] = Depends(get_actor),
    cancel: CancellationToken = Depends(get_cancellation_token),
):
    """
    Set one status for every unit x date. All cells are written or none.
    """
    options = dict(updated_by=actor, maintenance_type=payload.maintenance_type, cancel=cancel)
    if payload.date_from is not None:
        records = engine.bulk_apply_range(
            payload.unit_ids, payload.date_from, payload.date_to, payload.status, payload.notes, **options
        )
    else:
        records = engine.bulk_apply(payload.unit_ids, payload.dates or [], payload.status, payload.notes, **options)
    return BulkUpdateResponse(
        updated=len(records),
        unit_count=len({r.unit_id for r in records}),
        date_count=len({r.date for r in records}),
        records=records,
    )


@router.put("/{unit_id}/{day}", response_model=AvailabilityRecord)
@limiter.limit(get_rate_limit("availability_write"))
async def set_unit_status(
    request: Request,
    unit_id: str,
    day: str,
    payload: PointStatusUpdate,
    engine: AvailabilityEngine = Depends(get_engine),
    actor: Optional[str] = Depends(get_actor),
    cancel: CancellationToken = Depends(get_cancellation_token),
):
    """Insert or replace the status of one unit on one date"""
    if settings.optimistic_locking and payload.expected_version is None:
        raise ValidationError("expected_version is required", field="expected_version")

    return engine.set_status(
        unit_id,
        parse_date(day),
        payload.status,
        payload.notes,
        updated_by=actor,
        maintenance_type=payload.maintenance_type,
        expected_version=payload.expected_version,
        cancel=cancel,
    )


@router.delete("/{unit_id}/{day}", response_model=ClearResponse)
@limiter.limit(get_rate_limit("availability_write"))
async def clear_unit_status(
    request: Request,
    unit_id: str,
    day: str,
    engine: AvailabilityEngine = Depends(get_engine),
    cancel: CancellationToken = Depends(get_cancellation_token),
):
    """Remove the stored exception so the cell falls back to available"""
    parsed = parse_date(day)
    cleared = engine.clear_status(unit_id, parsed, cancel=cancel)
    return ClearResponse(unit_id=unit_id, date=parsed, cleared=cleared)
