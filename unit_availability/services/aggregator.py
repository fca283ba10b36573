"""
Availability Aggregator

Per-date counts that reconcile stored exceptions against the
default-available rule:

    available = explicit_available + (|universe| - units_with_a_record)

Units never mentioned on a date count as available, units recorded with
another status do not, and units explicitly recorded as available are
counted once.
"""

import logging
from datetime import date
from typing import Dict, Iterable, List, Optional

from ..models.unit_availability import AvailabilityStatus, DEFAULT_STATUS
from ..schemas.availability import AvailabilityRecord, DailySummary
from ..utils.validators import parse_date, parse_status
from .availability_repository import AvailabilityRepository
from .bulk_updater import expand_dates
from .range_index import RangeQueryIndex

logger = logging.getLogger(__name__)


class AvailabilityAggregator:
    """
    Reads explicit records from the index when it covers the universe for
    the date, otherwise from a single repository read.
    """

    def __init__(
        self,
        index: Optional[RangeQueryIndex] = None,
        repository: Optional[AvailabilityRepository] = None,
    ):
        if index is None and repository is None:
            raise ValueError("AvailabilityAggregator needs an index or a repository")
        self.index = index
        self.repository = repository

    def _explicit_records(self, day: date, universe: List[str]) -> List[AvailabilityRecord]:
        if self.index is not None and (self.repository is None or self.index.covers(universe, day)):
            return self.index.records_on(day, universe)
        logger.debug(f"Index does not cover {day}, reading {len(universe)} units from storage")
        return self.repository.query_date(universe, day)

    def _counts(self, day: date, universe: List[str]) -> Dict[AvailabilityStatus, int]:
        members = set(universe)
        explicit = [r for r in self._explicit_records(day, universe) if r.unit_id in members]

        with_exception = len({r.unit_id for r in explicit})
        counts = {status: 0 for status in AvailabilityStatus}
        counts[DEFAULT_STATUS] = len(members) - with_exception
        for record in explicit:
            counts[record.status] += 1
        return counts

    def available_count(self, day, universe: Iterable[str]) -> int:
        """How many units of the universe are available on `day`"""
        day = parse_date(day)
        return self._counts(day, _unique(universe))[DEFAULT_STATUS]

    def count_by_status(self, day, universe: Iterable[str]) -> Dict[AvailabilityStatus, int]:
        """Units per status on `day`; every status is present as a key"""
        day = parse_date(day)
        return self._counts(day, _unique(universe))

    def daily_summary(self, universe: Iterable[str], date_from, date_to) -> List[DailySummary]:
        """Counts for every date of an inclusive window"""
        units = _unique(universe)
        summaries = []
        for day in expand_dates(date_from, date_to):
            counts = self._counts(day, units)
            summaries.append(DailySummary(
                date=day,
                universe_size=len(units),
                available=counts[DEFAULT_STATUS],
                by_status=counts,
            ))
        return summaries

    def units_with_status(self, day, universe: Iterable[str], status) -> List[str]:
        """Units of the universe whose effective status on `day` is `status`"""
        day = parse_date(day)
        wanted = parse_status(status)
        units = _unique(universe)
        by_unit = {r.unit_id: r.status for r in self._explicit_records(day, units)}
        return [u for u in units if by_unit.get(u, DEFAULT_STATUS) == wanted]


def _unique(universe: Iterable[str]) -> List[str]:
    """De-duplicate while preserving the caller's (catalog) order"""
    return list(dict.fromkeys(universe))
