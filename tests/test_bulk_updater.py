"""
Tests for BulkStatusUpdater

Tests cover:
- Cartesian completeness: every unit x date pair ends with the new status
- Empty unit or date sets are rejected before any storage call
- Oversized requests are rejected
- The index is updated only after a successful commit
- Date helpers (inclusive ranges, grid windows)
"""

import pytest
from datetime import date, timedelta
from unittest.mock import MagicMock, patch

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from unit_availability.errors import BulkWriteError, InvalidRequestError, ValidationError
from unit_availability.models import AvailabilityStatus
from unit_availability.services.bulk_updater import BulkStatusUpdater, expand_dates, window_dates


DAY = date(2026, 3, 1)


class TestBulkApply:

    def test_every_pair_gets_status(self, repository, index):
        updater = BulkStatusUpdater(repository, index)
        units = ["u1", "u2"]
        dates = [DAY, DAY + timedelta(days=1)]

        records = updater.bulk_apply(units, dates, "maintenance")

        assert len(records) == 4
        for unit_id in units:
            for day in dates:
                assert repository.get_one(unit_id, day).status == AvailabilityStatus.MAINTENANCE
                assert index.get(unit_id, day) == AvailabilityStatus.MAINTENANCE

    def test_overwrites_existing_statuses(self, repository, index):
        repository.upsert_one("u1", DAY, "booked")
        updater = BulkStatusUpdater(repository, index)

        updater.bulk_apply(["u1", "u2"], [DAY], "out_of_service")

        assert repository.get_one("u1", DAY).status == AvailabilityStatus.OUT_OF_SERVICE

    def test_duplicates_collapse(self, repository):
        updater = BulkStatusUpdater(repository)

        records = updater.bulk_apply(["u1", "u1"], [DAY, "2026-03-01"], "booked")

        assert len(records) == 1

    def test_records_actor_and_notes(self, repository):
        updater = BulkStatusUpdater(repository)

        updater.bulk_apply(["u1"], [DAY], "maintenance", "deep clean", updated_by="ops", maintenance_type="cleaning")

        record = repository.get_one("u1", DAY)
        assert record.notes == "deep clean"
        assert record.updated_by == "ops"
        assert record.maintenance_type == "cleaning"

    def test_range_variant_is_inclusive(self, repository):
        updater = BulkStatusUpdater(repository)

        records = updater.bulk_apply_range(["u1"], DAY, DAY + timedelta(days=2), "reserved")

        assert [r.date for r in records] == [DAY, DAY + timedelta(days=1), DAY + timedelta(days=2)]

    @pytest.mark.parametrize("units,dates", [([], [DAY]), (["u1"], []), (None, [DAY])])
    def test_empty_sets_rejected_before_storage(self, units, dates):
        repository = MagicMock()
        updater = BulkStatusUpdater(repository)

        with pytest.raises(InvalidRequestError) as exc_info:
            updater.bulk_apply(units, dates, "booked")

        assert exc_info.value.status_code == 400
        repository.upsert_many.assert_not_called()

    def test_too_many_cells_rejected(self):
        repository = MagicMock()
        updater = BulkStatusUpdater(repository, max_cells=5)

        with pytest.raises(InvalidRequestError):
            updater.bulk_apply(["u1", "u2", "u3"], [DAY, DAY + timedelta(days=1)], "booked")

        repository.upsert_many.assert_not_called()

    def test_bad_status_rejected_before_storage(self):
        repository = MagicMock()
        updater = BulkStatusUpdater(repository)

        with pytest.raises(ValidationError):
            updater.bulk_apply(["u1"], [DAY], "unknown")

        repository.upsert_many.assert_not_called()

    def test_bad_date_rejected_before_storage(self):
        repository = MagicMock()
        updater = BulkStatusUpdater(repository)

        with pytest.raises(ValidationError):
            updater.bulk_apply(["u1"], ["2026/03/01"], "booked")

        repository.upsert_many.assert_not_called()

    def test_single_repository_call(self):
        repository = MagicMock()
        repository.upsert_many.return_value = []
        updater = BulkStatusUpdater(repository)

        updater.bulk_apply(["u2", "u1"], [DAY + timedelta(days=1), DAY], "booked", updated_by="ops")

        assert repository.upsert_many.call_count == 1
        writes = repository.upsert_many.call_args.args[0]
        assert [(w.unit_id, w.date) for w in writes] == [
            ("u1", DAY), ("u1", DAY + timedelta(days=1)),
            ("u2", DAY), ("u2", DAY + timedelta(days=1)),
        ]
        assert repository.upsert_many.call_args.kwargs["updated_by"] == "ops"

    def test_failed_write_leaves_index_unchanged(self, index):
        from unit_availability.schemas.availability import AvailabilityRecord

        index.apply(AvailabilityRecord(unit_id="u1", date=DAY, status=AvailabilityStatus.BOOKED))
        repository = MagicMock()
        repository.upsert_many.side_effect = BulkWriteError("bulk upsert failed", storage_failure=True)
        updater = BulkStatusUpdater(repository, index)

        with pytest.raises(BulkWriteError):
            updater.bulk_apply(["u1", "u2"], [DAY], "maintenance")

        assert index.get("u1", DAY) == AvailabilityStatus.BOOKED
        assert index.get("u2", DAY) == AvailabilityStatus.AVAILABLE

    def test_storage_rollback_through_real_repository(self, repository, index):
        """A real multi-chunk write that fails leaves store and index empty"""
        from sqlalchemy.exc import IntegrityError

        original = repository._upsert_chunk
        calls = []

        def flaky_chunk(chunk, updated_by):
            calls.append(chunk)
            if len(calls) == 2:
                raise IntegrityError("INSERT", {}, Exception("constraint failed"))
            return original(chunk, updated_by)

        updater = BulkStatusUpdater(repository, index)
        with patch.object(repository, "_upsert_chunk", side_effect=flaky_chunk):
            with pytest.raises(BulkWriteError):
                updater.bulk_apply(["u1", "u2", "u3"], [DAY, DAY + timedelta(days=1)], "booked")

        assert repository.query_range(["u1", "u2", "u3"], DAY, DAY + timedelta(days=1)) == []
        assert len(index) == 0

    def test_huge_range_rejected_before_expanding_dates(self):
        repository = MagicMock()
        updater = BulkStatusUpdater(repository, max_cells=20000)

        with patch("unit_availability.services.bulk_updater.expand_dates") as expand:
            with pytest.raises(InvalidRequestError):
                updater.bulk_apply_range(["u1"], date(1, 1, 1), date(9999, 12, 31), "booked")

        expand.assert_not_called()
        repository.upsert_many.assert_not_called()

    def test_range_size_counts_every_unit(self):
        updater = BulkStatusUpdater(MagicMock(), max_cells=10)

        with pytest.raises(InvalidRequestError):
            updater.bulk_apply_range(["u1", "u2", "u3"], DAY, DAY + timedelta(days=3), "booked")

    def test_range_without_units_rejected(self):
        repository = MagicMock()
        updater = BulkStatusUpdater(repository)

        with pytest.raises(InvalidRequestError):
            updater.bulk_apply_range([], date(1, 1, 1), date(9999, 12, 31), "booked")

        repository.upsert_many.assert_not_called()


class TestDateHelpers:

    def test_expand_dates_inclusive(self):
        assert expand_dates(DAY, DAY + timedelta(days=2)) == [
            DAY, DAY + timedelta(days=1), DAY + timedelta(days=2),
        ]

    def test_expand_single_day(self):
        assert expand_dates("2026-03-01", "2026-03-01") == [DAY]

    def test_expand_inverted_range(self):
        with pytest.raises(ValidationError):
            expand_dates(DAY, DAY - timedelta(days=1))

    def test_expand_crosses_month_end(self):
        dates = expand_dates("2026-02-27", "2026-03-02")
        assert [d.isoformat() for d in dates] == [
            "2026-02-27", "2026-02-28", "2026-03-01", "2026-03-02",
        ]

    def test_window_dates(self):
        assert window_dates(DAY, 3) == [DAY, DAY + timedelta(days=1), DAY + timedelta(days=2)]

    def test_window_needs_positive_days(self):
        with pytest.raises(InvalidRequestError):
            window_dates(DAY, 0)
