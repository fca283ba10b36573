"""
Range Query Index

In-memory, per-unit view of availability for loaded date windows.
Derived from the repository and never authoritative: any status served
here is "current as of the last load/apply".

- load(): one grouped range read, replaces the units' cached window
- get(): O(1) status lookup with default-available applied
- apply()/invalidate(): in-place updates after successful writes
"""

import bisect
import logging
import threading
import time
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from ..models.unit_availability import AvailabilityStatus, DEFAULT_STATUS
from ..schemas.availability import AvailabilityRecord
from ..utils.cancellation import CancellationToken, check_cancelled
from ..utils.logging_config import get_logger
from ..utils.validators import parse_date, validate_range

logger = get_logger(__name__)


class _UnitSeries:
    """Date-ordered records of a single unit"""

    __slots__ = ("dates", "records")

    def __init__(self):
        self.dates: List[date] = []
        self.records: Dict[date, AvailabilityRecord] = {}

    def put(self, record: AvailabilityRecord) -> None:
        if record.date not in self.records:
            bisect.insort(self.dates, record.date)
        self.records[record.date] = record

    def remove(self, day: date) -> bool:
        if self.records.pop(day, None) is None:
            return False
        index = bisect.bisect_left(self.dates, day)
        del self.dates[index]
        return True

    def drop_window(self, start: date, end: date) -> None:
        lo = bisect.bisect_left(self.dates, start)
        hi = bisect.bisect_right(self.dates, end)
        for day in self.dates[lo:hi]:
            del self.records[day]
        del self.dates[lo:hi]

    def ordered(self) -> List[AvailabilityRecord]:
        return [self.records[d] for d in self.dates]

    def copy(self) -> "_UnitSeries":
        clone = _UnitSeries()
        clone.dates = list(self.dates)
        clone.records = dict(self.records)
        return clone


def _merge_window(windows: List[Tuple[date, date]], start: date, end: date) -> List[Tuple[date, date]]:
    """Add [start, end] to a list of disjoint windows, merging overlaps and adjacency"""
    merged: List[Tuple[date, date]] = []
    for w_start, w_end in sorted(windows + [(start, end)]):
        if merged and w_start.toordinal() <= merged[-1][1].toordinal() + 1:
            merged[-1] = (merged[-1][0], max(merged[-1][1], w_end))
        else:
            merged.append((w_start, w_end))
    return merged


class RangeQueryIndex:
    """
    Grouped cache: unit_id -> date-ordered AvailabilityRecords.

    Safe for use from multiple threads: every read and mutation holds an
    RLock, and load() builds new per-unit series before swapping them in.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._series: Dict[str, _UnitSeries] = {}
        self._coverage: Dict[str, List[Tuple[date, date]]] = {}
        # Write generation; cells touched while a load is in flight are
        # remembered so the load's older snapshot cannot overwrite them.
        self._generation = 0
        self._loads_in_flight = 0
        self._touched: Dict[str, Dict[date, int]] = {}

    def _touch(self, unit_id: str, day: date) -> None:
        self._generation += 1
        if self._loads_in_flight:
            self._touched.setdefault(unit_id, {})[day] = self._generation

    def load(
        self,
        repository,
        unit_ids: Iterable[str],
        date_from,
        date_to,
        *,
        cancel: Optional[CancellationToken] = None,
    ) -> int:
        """
        Rebuild the cached window [date_from, date_to] for the given units.
        On any read error or cancellation the index is left untouched.
        Cells applied or invalidated after the read began keep their
        newer cached value. Returns the number of records loaded.
        """
        start, end = validate_range(date_from, date_to)
        ids = list(dict.fromkeys(unit_ids))
        started = time.perf_counter()

        with self._lock:
            self._loads_in_flight += 1
            read_generation = self._generation

        try:
            records = repository.query_range(ids, start, end, cancel=cancel)
            check_cancelled(cancel, "index load")

            grouped: Dict[str, List[AvailabilityRecord]] = {unit_id: [] for unit_id in ids}
            for record in records:
                grouped.setdefault(record.unit_id, []).append(record)

            with self._lock:
                replacements: Dict[str, _UnitSeries] = {}
                for unit_id, unit_records in grouped.items():
                    existing = self._series.get(unit_id)
                    written = {
                        day
                        for day, generation in self._touched.get(unit_id, {}).items()
                        if generation > read_generation and start <= day <= end
                    }

                    series = existing.copy() if existing else _UnitSeries()
                    series.drop_window(start, end)
                    for record in unit_records:
                        if record.date not in written:
                            series.put(record)
                    for day in written:
                        current = existing.records.get(day) if existing else None
                        if current is not None:
                            series.put(current)
                    replacements[unit_id] = series

                self._series.update(replacements)
                for unit_id in grouped:
                    self._coverage[unit_id] = _merge_window(self._coverage.get(unit_id, []), start, end)
        finally:
            with self._lock:
                self._loads_in_flight -= 1
                if not self._loads_in_flight:
                    self._touched = {}

        logger.index_loaded(
            unit_count=len(grouped),
            record_count=len(records),
            window=f"{start.isoformat()}..{end.isoformat()}",
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return len(records)

    def get(self, unit_id: str, day) -> AvailabilityStatus:
        """Cached status for the cell, or available when nothing is cached"""
        record = self.get_record(unit_id, day)
        return record.status if record is not None else DEFAULT_STATUS

    def get_record(self, unit_id: str, day) -> Optional[AvailabilityRecord]:
        day = parse_date(day)
        with self._lock:
            series = self._series.get(unit_id)
            if series is None:
                return None
            return series.records.get(day)

    def apply(self, record: AvailabilityRecord) -> None:
        """Insert or replace one record, keeping the unit's dates ordered"""
        with self._lock:
            series = self._series.get(record.unit_id)
            if series is None:
                series = _UnitSeries()
                self._series[record.unit_id] = series
            series.put(record)
            self._touch(record.unit_id, record.date)

    def apply_many(self, records: Iterable[AvailabilityRecord]) -> None:
        with self._lock:
            for record in records:
                self.apply(record)

    def invalidate(self, unit_id: str, day) -> bool:
        """
        Drop the cached record for one cell. Used after a clear, where the
        stored row is gone and default-available is the new truth.
        """
        day = parse_date(day)
        with self._lock:
            self._touch(unit_id, day)
            series = self._series.get(unit_id)
            if series is None:
                return False
            return series.remove(day)

    def records_for_unit(self, unit_id: str) -> List[AvailabilityRecord]:
        with self._lock:
            series = self._series.get(unit_id)
            return series.ordered() if series else []

    def records_on(self, day, universe: Iterable[str]) -> List[AvailabilityRecord]:
        """Cached records on `day` for units in the universe"""
        day = parse_date(day)
        found = []
        with self._lock:
            for unit_id in set(universe):
                series = self._series.get(unit_id)
                if series is None:
                    continue
                record = series.records.get(day)
                if record is not None:
                    found.append(record)
        return found

    def covers(self, unit_ids: Iterable[str], day) -> bool:
        """True when a loaded window contains `day` for every unit"""
        day = parse_date(day)
        with self._lock:
            for unit_id in unit_ids:
                windows = self._coverage.get(unit_id)
                if not windows or not any(s <= day <= e for s, e in windows):
                    return False
        return True

    def unit_ids(self) -> List[str]:
        with self._lock:
            return list(self._series.keys())

    def clear(self) -> None:
        with self._lock:
            self._series = {}
            self._coverage = {}
            self._touched = {}

    def __len__(self) -> int:
        with self._lock:
            return sum(len(s.dates) for s in self._series.values())
