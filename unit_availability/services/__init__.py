# Services package
from .availability_repository import AvailabilityRepository, AvailabilityWrite, build_write
from .range_index import RangeQueryIndex
from .bulk_updater import BulkStatusUpdater, expand_dates, window_dates
from .aggregator import AvailabilityAggregator
from .unit_catalog import UnitCatalog, SqlUnitCatalog, StaticUnitCatalog
from .availability_engine import AvailabilityEngine

__all__ = [
    "AvailabilityRepository", "AvailabilityWrite", "build_write",
    "RangeQueryIndex",
    "BulkStatusUpdater", "expand_dates", "window_dates",
    "AvailabilityAggregator",
    "UnitCatalog", "SqlUnitCatalog", "StaticUnitCatalog",
    "AvailabilityEngine",
]
