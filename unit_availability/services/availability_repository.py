"""
Availability Repository

Durable store of (unit_id, date) -> status records.

- Point upsert and batch upsert keyed by the (unit_id, date) unique constraint
- Batch writes are chunked but committed in ONE transaction (all or nothing)
- Range reads return only stored rows; callers apply default-available
- Returned records are detached snapshots, never live ORM rows
"""

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from sqlalchemy import insert
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..config import settings
from ..errors import (
    AvailabilityError,
    BulkWriteError,
    ConflictError,
    StorageUnavailableError,
    ValidationError,
)
from ..models.unit_availability import UnitAvailability, AvailabilityStatus, utcnow
from ..schemas.availability import AvailabilityRecord
from ..utils.cancellation import CancellationToken, check_cancelled
from ..utils.db_helpers import acquire_row_lock, chunked, get_upsert_insert, is_connection_error
from ..utils.validators import (
    MAX_MAINTENANCE_TYPE_LENGTH,
    clean_optional_text,
    parse_date,
    parse_status,
    require_unit_id,
    validate_range,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AvailabilityWrite:
    """One validated cell write"""
    unit_id: str
    date: date
    status: AvailabilityStatus
    notes: Optional[str] = None
    maintenance_type: Optional[str] = None

    @property
    def key(self) -> Tuple[str, date]:
        return (self.unit_id, self.date)


WriteEntry = Union[AvailabilityWrite, Tuple, dict]


def build_write(
    unit_id,
    day,
    status,
    notes: Optional[str] = None,
    maintenance_type: Optional[str] = None,
) -> AvailabilityWrite:
    """Validate raw values into an AvailabilityWrite (raises ValidationError)"""
    return AvailabilityWrite(
        unit_id=require_unit_id(unit_id),
        date=parse_date(day),
        status=parse_status(status),
        notes=clean_optional_text(notes, "notes"),
        maintenance_type=clean_optional_text(
            maintenance_type, "maintenance_type", MAX_MAINTENANCE_TYPE_LENGTH
        ),
    )


def coerce_write(entry: WriteEntry) -> AvailabilityWrite:
    """
    Accepts an AvailabilityWrite, a (unit_id, date, status[, notes]) tuple
    or a dict with the same keys.
    """
    if isinstance(entry, AvailabilityWrite):
        return build_write(entry.unit_id, entry.date, entry.status, entry.notes, entry.maintenance_type)
    if isinstance(entry, dict):
        return build_write(
            entry.get("unit_id"),
            entry.get("date"),
            entry.get("status"),
            entry.get("notes"),
            entry.get("maintenance_type"),
        )
    if isinstance(entry, (tuple, list)) and 3 <= len(entry) <= 4:
        return build_write(*entry)
    raise ValidationError(f"Unsupported write entry: {entry!r}")


def to_record(row: UnitAvailability) -> AvailabilityRecord:
    return AvailabilityRecord.model_validate(row)


class AvailabilityRepository:
    """
    CRUD over UnitAvailability keyed by (unit_id, date).

    The repository owns the transaction for each logical write: it commits
    on success and rolls back on every failure path.
    """

    def __init__(self, db: Session, chunk_size: Optional[int] = None):
        self.db = db
        self.chunk_size = chunk_size or settings.bulk_chunk_size

    # ------------------------------------------------------------------
    # Transaction handling
    # ------------------------------------------------------------------

    @contextmanager
    def _transaction(self, operation: str, bulk: bool = False):
        try:
            yield
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning(f"{operation} rejected by store constraint: {exc.orig}")
            if bulk:
                raise BulkWriteError(
                    f"{operation} rejected by the store; no changes were applied",
                    cause=exc,
                    storage_failure=True,
                ) from exc
            raise ConflictError(f"{operation} lost a race with a concurrent writer") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            if is_connection_error(exc):
                logger.error(f"{operation} failed, storage unavailable: {exc}")
                raise StorageUnavailableError(f"Storage unavailable during {operation}") from exc
            if bulk:
                raise BulkWriteError(
                    f"{operation} failed; no changes were applied",
                    cause=exc,
                    storage_failure=True,
                ) from exc
            raise
        except Exception:
            self.db.rollback()
            raise

    def _read_guard(self, operation: str, exc: SQLAlchemyError):
        if is_connection_error(exc):
            logger.error(f"{operation} failed, storage unavailable: {exc}")
            return StorageUnavailableError(f"Storage unavailable during {operation}")
        return None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _upsert_chunk(self, writes: Sequence[AvailabilityWrite], updated_by: Optional[str]) -> None:
        """Issue one INSERT ... ON CONFLICT statement for a chunk of unique cells"""
        now = utcnow()
        rows = [_new_row(w, updated_by, now) for w in writes]

        insert_fn = get_upsert_insert(self.db)
        if insert_fn is None:
            self._upsert_chunk_fallback(rows)
            return

        stmt = insert_fn(UnitAvailability).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=["unit_id", "date"],
            set_={
                "status": stmt.excluded.status,
                "notes": stmt.excluded.notes,
                "maintenance_type": stmt.excluded.maintenance_type,
                "updated_by": stmt.excluded.updated_by,
                "updated_at": stmt.excluded.updated_at,
                "version": UnitAvailability.version + 1,
            },
        )
        self.db.execute(stmt)

    def _upsert_chunk_fallback(self, rows: List[dict]) -> None:
        """Lock-then-write for dialects without ON CONFLICT"""
        for row in rows:
            existing = acquire_row_lock(
                self.db,
                UnitAvailability,
                UnitAvailability.unit_id == row["unit_id"],
                UnitAvailability.date == row["date"],
            )
            if existing:
                existing.status = row["status"]
                existing.notes = row["notes"]
                existing.maintenance_type = row["maintenance_type"]
                existing.updated_by = row["updated_by"]
                existing.updated_at = row["updated_at"]
                existing.version = (existing.version or 0) + 1
            else:
                self.db.add(UnitAvailability(**row))
        self.db.flush()

    def _fetch_cells(self, keys: Sequence[Tuple[str, date]]) -> List[AvailabilityRecord]:
        """Read back the rows for the given cells, in the order of keys"""
        if not keys:
            return []
        unit_ids = sorted({k[0] for k in keys})
        dates = sorted({k[1] for k in keys})
        rows = (
            self.db.query(UnitAvailability)
            .filter(
                UnitAvailability.unit_id.in_(unit_ids),
                UnitAvailability.date.in_(dates),
            )
            .execution_options(populate_existing=True)
            .all()
        )
        by_key = {(r.unit_id, r.date): r for r in rows}
        return [to_record(by_key[k]) for k in keys if k in by_key]

    def upsert_one(
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
        """
        Insert or replace the record for (unit_id, day).

        expected_version enables compare-and-set: 0 means the cell must not
        have a stored row yet, N means the stored row must be at version N.
        """
        write = build_write(unit_id, day, status, notes, maintenance_type)
        check_cancelled(cancel, "upsert")

        with self._transaction("upsert"):
            if expected_version is None:
                self._upsert_chunk([write], updated_by)
            else:
                self._compare_and_set(write, updated_by, expected_version)

            records = self._fetch_cells([write.key])
            check_cancelled(cancel, "upsert")

        record = records[0]
        logger.info(
            f"Upserted availability {record.unit_id} {record.date} -> "
            f"{record.status.value} (v{record.version})"
        )
        return record

    def _compare_and_set(self, write: AvailabilityWrite, updated_by: Optional[str], expected_version: int) -> None:
        existing = acquire_row_lock(
            self.db,
            UnitAvailability,
            UnitAvailability.unit_id == write.unit_id,
            UnitAvailability.date == write.date,
        )
        current_version = existing.version if existing else 0

        if current_version != expected_version:
            raise ConflictError(
                f"Cell {write.unit_id} {write.date.isoformat()} is at version "
                f"{current_version}, expected {expected_version}",
                current_version=current_version,
            )

        if existing is None:
            # No row to lock yet: the insert itself must lose to a concurrent first writer
            if not self._insert_new(write, updated_by):
                current = self._current_version(write)
                raise ConflictError(
                    f"Cell {write.unit_id} {write.date.isoformat()} was created concurrently "
                    f"(now at version {current}), expected it not to exist",
                    current_version=current,
                )
            return

        updated = (
            self.db.query(UnitAvailability)
            .filter(
                UnitAvailability.id == existing.id,
                UnitAvailability.version == expected_version,
            )
            .update(
                {
                    "status": write.status.value,
                    "notes": write.notes,
                    "maintenance_type": write.maintenance_type,
                    "updated_by": updated_by,
                    "updated_at": utcnow(),
                    "version": expected_version + 1,
                },
                synchronize_session=False,
            )
        )
        if updated == 0:
            raise ConflictError(
                f"Cell {write.unit_id} {write.date.isoformat()} changed concurrently",
            )

    def _insert_new(self, write: AvailabilityWrite, updated_by: Optional[str]) -> bool:
        """
        Insert a cell that must not exist. Returns False when another
        writer's row is already there.
        """
        row = _new_row(write, updated_by, utcnow())
        table = UnitAvailability.__table__

        insert_fn = get_upsert_insert(self.db)
        if insert_fn is None:
            # Unique violation surfaces as IntegrityError -> ConflictError in _transaction
            self.db.execute(insert(table).values(row))
            return True

        stmt = insert_fn(table).values(row).on_conflict_do_nothing(index_elements=["unit_id", "date"])
        result = self.db.execute(stmt)
        return result.rowcount == 1

    def _current_version(self, write: AvailabilityWrite) -> Optional[int]:
        return (
            self.db.query(UnitAvailability.version)
            .filter(
                UnitAvailability.unit_id == write.unit_id,
                UnitAvailability.date == write.date,
            )
            .scalar()
        )

    def upsert_many(
        self,
        entries: Iterable[WriteEntry],
        *,
        updated_by: Optional[str] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> List[AvailabilityRecord]:
        """
        Apply every entry as an upsert, atomically.

        All entries are validated before the first statement; the first
        invalid one raises BulkWriteError with its index. Storage failures
        and cancellation roll back the whole batch.
        """
        writes: List[AvailabilityWrite] = []
        for index, entry in enumerate(entries):
            try:
                writes.append(coerce_write(entry))
            except ValidationError as exc:
                unit_id, day = _entry_identity(entry)
                raise BulkWriteError(
                    f"Entry {index} is invalid: {exc.message}; no changes were applied",
                    index=index,
                    unit_id=unit_id,
                    date=day,
                    cause=exc,
                ) from exc

        if not writes:
            return []

        # Last occurrence wins for duplicate cells within the batch
        unique = {}
        for w in writes:
            unique.pop(w.key, None)
            unique[w.key] = w
        ordered = list(unique.values())

        check_cancelled(cancel, "bulk upsert")

        records: List[AvailabilityRecord] = []
        with self._transaction("bulk upsert", bulk=True):
            for chunk in chunked(ordered, self.chunk_size):
                check_cancelled(cancel, "bulk upsert")
                self._upsert_chunk(chunk, updated_by)
                records.extend(self._fetch_cells([w.key for w in chunk]))
            check_cancelled(cancel, "bulk upsert")

        logger.info(f"Bulk upserted {len(records)} availability records")
        return records

    def clear(
        self,
        unit_id: str,
        day,
        *,
        cancel: Optional[CancellationToken] = None,
    ) -> bool:
        """
        Delete the stored record, returning the cell to default-available.
        Returns whether a row existed.
        """
        unit_id = require_unit_id(unit_id)
        day = parse_date(day)
        check_cancelled(cancel, "clear")

        with self._transaction("clear"):
            deleted = (
                self.db.query(UnitAvailability)
                .filter(
                    UnitAvailability.unit_id == unit_id,
                    UnitAvailability.date == day,
                )
                .delete(synchronize_session=False)
            )
            check_cancelled(cancel, "clear")

        logger.info(f"Cleared availability {unit_id} {day} (existed={bool(deleted)})")
        return bool(deleted)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def query_range(
        self,
        unit_ids: Iterable[str],
        date_from,
        date_to,
        *,
        cancel: Optional[CancellationToken] = None,
    ) -> List[AvailabilityRecord]:
        """
        Every stored record for the units within [date_from, date_to]
        (inclusive), ordered by unit_id then date.
        """
        start, end = validate_range(date_from, date_to)
        ids = sorted({require_unit_id(u) for u in unit_ids})
        if not ids:
            return []

        check_cancelled(cancel, "range query")

        records: List[AvailabilityRecord] = []
        try:
            for id_chunk in chunked(ids, self.chunk_size):
                rows = (
                    self.db.query(UnitAvailability)
                    .filter(
                        UnitAvailability.unit_id.in_(id_chunk),
                        UnitAvailability.date >= start,
                        UnitAvailability.date <= end,
                    )
                    .order_by(UnitAvailability.unit_id, UnitAvailability.date)
                    .execution_options(populate_existing=True)
                    .all()
                )
                records.extend(to_record(r) for r in rows)
                check_cancelled(cancel, "range query")
        except SQLAlchemyError as exc:
            unavailable = self._read_guard("range query", exc)
            if unavailable:
                raise unavailable from exc
            raise

        return records

    def query_date(
        self,
        unit_ids: Iterable[str],
        day,
        *,
        cancel: Optional[CancellationToken] = None,
    ) -> List[AvailabilityRecord]:
        day = parse_date(day)
        return self.query_range(unit_ids, day, day, cancel=cancel)

    def get_one(self, unit_id: str, day) -> Optional[AvailabilityRecord]:
        """Stored record for one cell, or None when the cell is at default"""
        records = self.query_date([unit_id], day)
        return records[0] if records else None


def _new_row(write: AvailabilityWrite, updated_by: Optional[str], now) -> dict:
    return {
        "id": str(uuid.uuid4()),
        "unit_id": write.unit_id,
        "date": write.date,
        "status": write.status.value,
        "notes": write.notes,
        "maintenance_type": write.maintenance_type,
        "updated_by": updated_by,
        "created_at": now,
        "updated_at": now,
        "version": 1,
    }


def _entry_identity(entry) -> Tuple[Optional[str], Optional[date]]:
    """Best-effort (unit_id, date) of a raw entry for error reporting"""
    unit_id = None
    raw_date = None
    if isinstance(entry, AvailabilityWrite):
        unit_id, raw_date = entry.unit_id, entry.date
    elif isinstance(entry, dict):
        unit_id, raw_date = entry.get("unit_id"), entry.get("date")
    elif isinstance(entry, (tuple, list)) and len(entry) >= 2:
        unit_id, raw_date = entry[0], entry[1]

    try:
        day = parse_date(raw_date)
    except AvailabilityError:
        day = None
    return (unit_id if isinstance(unit_id, str) else None), day
