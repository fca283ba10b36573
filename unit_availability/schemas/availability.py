from pydantic import BaseModel, Field, model_validator
from typing import Optional, List, Dict
from datetime import date, datetime

from ..models.unit_availability import AvailabilityStatus


class AvailabilityRecord(BaseModel):
    """Detached snapshot of one stored (unit_id, date) row"""
    id: Optional[str] = None
    unit_id: str
    date: date
    status: AvailabilityStatus
    notes: Optional[str] = None
    maintenance_type: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 1

    class Config:
        from_attributes = True
        frozen = True


class PointStatusUpdate(BaseModel):
    """Body for setting one unit's status on one day"""
    status: AvailabilityStatus
    notes: Optional[str] = None
    maintenance_type: Optional[str] = Field(default=None, max_length=100)
    expected_version: Optional[int] = Field(
        default=None, ge=0, description="0 = cell must not have a stored row yet"
    )


class BulkStatusUpdate(BaseModel):
    """
    Set one status across units x dates.
    Either an explicit list of dates or an inclusive date_from/date_to range.
    """
    unit_ids: List[str]
    dates: Optional[List[date]] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    status: AvailabilityStatus
    notes: Optional[str] = None
    maintenance_type: Optional[str] = Field(default=None, max_length=100)

    @model_validator(mode="after")
    def check_date_selection(self):
        has_range = self.date_from is not None or self.date_to is not None
        if self.dates is not None and has_range:
            raise ValueError("provide either dates or date_from/date_to, not both")
        if has_range and (self.date_from is None or self.date_to is None):
            raise ValueError("date_from and date_to must be provided together")
        return self


class BulkUpdateResponse(BaseModel):
    updated: int
    unit_count: int
    date_count: int
    records: List[AvailabilityRecord]


class ClearResponse(BaseModel):
    unit_id: str
    date: date
    cleared: bool
    status: AvailabilityStatus = AvailabilityStatus.AVAILABLE


class CountResponse(BaseModel):
    date: date
    universe_size: int
    available: int
    by_status: Dict[AvailabilityStatus, int]


class DailySummary(BaseModel):
    """Per-date counts for a calendar header"""
    date: date
    universe_size: int
    available: int
    by_status: Dict[AvailabilityStatus, int]


class GridCell(BaseModel):
    date: date
    status: AvailabilityStatus
    explicit: bool = False
    notes: Optional[str] = None


class GridRow(BaseModel):
    unit_id: str
    cells: List[GridCell]


class GridResponse(BaseModel):
    start: date
    end: date
    dates: List[date]
    rows: List[GridRow]
    available_counts: Dict[date, int]


class UnitFilterResponse(BaseModel):
    date: date
    status: AvailabilityStatus
    unit_ids: List[str]
