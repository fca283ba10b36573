"""
Bulk Status Updater

Turns "set status S for units U1..Un across dates D1..Dm" into the n*m
cell writes and submits them as ONE repository call. The repository
chunks the statements but commits once, so the edit is all or nothing.
The range index is only touched after the commit succeeded.
"""

import time
from datetime import date, timedelta
from typing import Iterable, List, Optional

from ..config import settings
from ..errors import InvalidRequestError
from ..schemas.availability import AvailabilityRecord
from ..utils.cancellation import CancellationToken
from ..utils.logging_config import get_logger
from ..utils.validators import (
    clean_optional_text,
    parse_date,
    parse_status,
    require_unit_id,
    validate_range,
    MAX_MAINTENANCE_TYPE_LENGTH,
)
from .availability_repository import AvailabilityRepository, AvailabilityWrite
from .range_index import RangeQueryIndex

logger = get_logger(__name__)


def expand_dates(date_from, date_to) -> List[date]:
    """Every calendar day in [date_from, date_to], inclusive"""
    start, end = validate_range(date_from, date_to)
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def window_dates(start, days: int) -> List[date]:
    """`days` consecutive dates beginning at `start` (the grid's date headers)"""
    if days <= 0:
        raise InvalidRequestError("days must be a positive number")
    first = parse_date(start, "start")
    return [first + timedelta(days=offset) for offset in range(days)]


class BulkStatusUpdater:
    """
    Applies one status to the cartesian product of units x dates.

    Example:
        updater = BulkStatusUpdater(repository, index)
        updater.bulk_apply({"u1", "u2"}, {date(2026, 3, 1)}, "maintenance")
    """

    def __init__(
        self,
        repository: AvailabilityRepository,
        index: Optional[RangeQueryIndex] = None,
        max_cells: Optional[int] = None,
    ):
        self.repository = repository
        self.index = index
        self.max_cells = max_cells or settings.bulk_max_cells

    def _check_size(self, unit_count: int, date_count: int) -> None:
        cells = unit_count * date_count
        if cells > self.max_cells:
            raise InvalidRequestError(
                f"Bulk update of {cells} cells exceeds the limit of {self.max_cells}"
            )

    def build_writes(
        self,
        unit_ids: Iterable[str],
        dates: Iterable,
        status,
        notes: Optional[str] = None,
        maintenance_type: Optional[str] = None,
    ) -> List[AvailabilityWrite]:
        """Validate the request and expand it unit-major, dates ascending"""
        units = sorted({require_unit_id(u) for u in unit_ids})
        days = sorted({parse_date(d) for d in dates})

        if not units:
            raise InvalidRequestError("Bulk update needs at least one unit")
        if not days:
            raise InvalidRequestError("Bulk update needs at least one date")

        self._check_size(len(units), len(days))

        parsed_status = parse_status(status)
        notes = clean_optional_text(notes, "notes")
        maintenance_type = clean_optional_text(
            maintenance_type, "maintenance_type", MAX_MAINTENANCE_TYPE_LENGTH
        )

        return [
            AvailabilityWrite(
                unit_id=unit_id,
                date=day,
                status=parsed_status,
                notes=notes,
                maintenance_type=maintenance_type,
            )
            for unit_id in units
            for day in days
        ]

    def bulk_apply(
        self,
        unit_ids: Iterable[str],
        dates: Iterable,
        status,
        notes: Optional[str] = None,
        *,
        updated_by: Optional[str] = None,
        maintenance_type: Optional[str] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> List[AvailabilityRecord]:
        """
        Set `status` for every (unit, date) pair.

        Raises InvalidRequestError for an empty unit or date set before any
        storage call. Any failure leaves both the store and the index as
        they were.
        """
        unit_ids = list(unit_ids) if unit_ids is not None else []
        dates = list(dates) if dates is not None else []
        writes = self.build_writes(unit_ids, dates, status, notes, maintenance_type)

        unit_count = len({w.unit_id for w in writes})
        date_count = len({w.date for w in writes})
        started = time.perf_counter()

        records = self.repository.upsert_many(writes, updated_by=updated_by, cancel=cancel)

        if self.index is not None:
            self.index.apply_many(records)

        logger.bulk_applied(
            unit_count=unit_count,
            date_count=date_count,
            status=writes[0].status.value,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return records

    def bulk_apply_range(
        self,
        unit_ids: Iterable[str],
        date_from,
        date_to,
        status,
        notes: Optional[str] = None,
        *,
        updated_by: Optional[str] = None,
        maintenance_type: Optional[str] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> List[AvailabilityRecord]:
        """
        bulk_apply over an inclusive date range. The size limit is checked
        from the range bounds before any date is materialized.
        """
        unit_ids = list(unit_ids) if unit_ids is not None else []
        start, end = validate_range(date_from, date_to)
        if not unit_ids:
            raise InvalidRequestError("Bulk update needs at least one unit")
        self._check_size(len(set(unit_ids)), (end - start).days + 1)

        return self.bulk_apply(
            unit_ids,
            expand_dates(start, end),
            status,
            notes,
            updated_by=updated_by,
            maintenance_type=maintenance_type,
            cancel=cancel,
        )
