"""
Availability Engine

Request-scoped wiring of repository, shared range index, bulk updater
and aggregator. Writes go through the repository first; the index is
updated only after the commit succeeded.
"""

from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..errors import InvalidRequestError
from ..models.unit_availability import AvailabilityStatus
from ..schemas.availability import AvailabilityRecord, DailySummary, GridCell, GridRow, GridResponse
from ..utils.cancellation import CancellationToken
from ..utils.logging_config import get_logger
from ..utils.validators import parse_date, require_unit_id
from .aggregator import AvailabilityAggregator
from .availability_repository import AvailabilityRepository
from .bulk_updater import BulkStatusUpdater, window_dates
from .range_index import RangeQueryIndex

logger = get_logger(__name__)


class AvailabilityEngine:
    """
    Facade used by the API layer.

    The index is usually process-wide (shared across requests); the
    session and repository are per request.
    """

    def __init__(
        self,
        db: Session,
        index: Optional[RangeQueryIndex] = None,
        repository: Optional[AvailabilityRepository] = None,
    ):
        self.db = db
        self.repository = repository or AvailabilityRepository(db)
        self.index = index if index is not None else RangeQueryIndex()
        self.updater = BulkStatusUpdater(self.repository, self.index)
        self.aggregator = AvailabilityAggregator(self.index, self.repository)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def set_status(
        self,
        unit_id: str,
        day,
        status,
        notes: Optional[str] = None,
        *,
        updated_by: Optional[str] = None,
        maintenance_type: Optional[str] = None,
        expected_version: Optional[int] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> AvailabilityRecord:
        record = self.repository.upsert_one(
            unit_id,
            day,
            status,
            notes,
            updated_by=updated_by,
            maintenance_type=maintenance_type,
            expected_version=expected_version,
            cancel=cancel,
        )
        self.index.apply(record)
        logger.status_changed(record.unit_id, record.date.isoformat(), record.status.value, record.version)
        return record

    def clear_status(self, unit_id: str, day, *, cancel: Optional[CancellationToken] = None) -> bool:
        """Return a cell to default-available by deleting its stored row"""
        existed = self.repository.clear(unit_id, day, cancel=cancel)
        self.index.invalidate(unit_id, day)
        logger.status_cleared(unit_id, parse_date(day).isoformat(), existed)
        return existed

    def bulk_apply(
        self,
        unit_ids: Iterable[str],
        dates: Iterable,
        status,
        notes: Optional[str] = None,
        **kwargs,
    ) -> List[AvailabilityRecord]:
        return self.updater.bulk_apply(unit_ids, dates, status, notes, **kwargs)

    def bulk_apply_range(
        self,
        unit_ids: Iterable[str],
        date_from,
        date_to,
        status,
        notes: Optional[str] = None,
        **kwargs,
    ) -> List[AvailabilityRecord]:
        return self.updater.bulk_apply_range(unit_ids, date_from, date_to, status, notes, **kwargs)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def load_window(
        self,
        unit_ids: Iterable[str],
        date_from,
        date_to,
        *,
        cancel: Optional[CancellationToken] = None,
    ) -> int:
        return self.index.load(self.repository, unit_ids, date_from, date_to, cancel=cancel)

    def status_of(self, unit_id: str, day) -> AvailabilityStatus:
        return self.index.get(require_unit_id(unit_id), day)

    def grid(
        self,
        unit_ids: Iterable[str],
        start,
        days: Optional[int] = None,
        *,
        cancel: Optional[CancellationToken] = None,
    ) -> GridResponse:
        """
        Load the window and return one row per unit with a cell per date,
        default-available applied, plus per-date available counts.
        """
        days = days or settings.grid_default_days
        if days > settings.grid_max_days:
            raise InvalidRequestError(f"Grid window is limited to {settings.grid_max_days} days")

        units = list(dict.fromkeys(require_unit_id(u) for u in unit_ids))
        dates = window_dates(start, days)
        if units:
            self.load_window(units, dates[0], dates[-1], cancel=cancel)

        rows = []
        for unit_id in units:
            cells = []
            for day in dates:
                record = self.index.get_record(unit_id, day)
                cells.append(GridCell(
                    date=day,
                    status=record.status if record else AvailabilityStatus.AVAILABLE,
                    explicit=record is not None,
                    notes=record.notes if record else None,
                ))
            rows.append(GridRow(unit_id=unit_id, cells=cells))

        available_counts = {day: self.aggregator.available_count(day, units) for day in dates}

        return GridResponse(
            start=dates[0],
            end=dates[-1],
            dates=dates,
            rows=rows,
            available_counts=available_counts,
        )

    def available_count(self, day, universe: Iterable[str]) -> int:
        return self.aggregator.available_count(day, universe)

    def count_by_status(self, day, universe: Iterable[str]) -> Dict[AvailabilityStatus, int]:
        return self.aggregator.count_by_status(day, universe)

    def daily_summary(self, universe: Iterable[str], date_from, date_to) -> List[DailySummary]:
        return self.aggregator.daily_summary(universe, date_from, date_to)

    def units_with_status(self, day, universe: Iterable[str], status) -> List[str]:
        return self.aggregator.units_with_status(day, universe, status)
