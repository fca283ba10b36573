"""
Tests for the availability HTTP API

Tests cover:
- Point set / clear and range reads
- Bulk updates (explicit dates and inclusive ranges)
- Counts, summaries, filters and the calendar grid
- Error mapping: validation 422, empty bulk 400, conflicts 409
- Universe resolution through the unit catalog
"""

import pytest
from unittest.mock import patch

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from unit_availability.models import PropertyUnit


BASE = "/api/availability"


@pytest.fixture
def catalog_units(session_factory):
    """Property p1 with three units, property p2 with one"""
    session = session_factory()
    session.add_all([
        PropertyUnit(id="unit-a", property_id="p1", unit_number="101"),
        PropertyUnit(id="unit-b", property_id="p1", unit_number="102"),
        PropertyUnit(id="unit-c", property_id="p1", unit_number="103"),
        PropertyUnit(id="unit-z", property_id="p2", unit_number="201"),
    ])
    session.commit()
    session.close()
    return ["unit-a", "unit-b", "unit-c"]


class TestPointEndpoints:

    def test_set_and_read_back(self, client):
        response = client.put(
            f"{BASE}/u1/2026-03-01",
            json={"status": "booked", "notes": "Guest Sara"},
            headers={"X-Actor": "front-desk"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "booked"
        assert body["updated_by"] == "front-desk"
        assert body["version"] == 1

        records = client.get(
            f"{BASE}/range",
            params={"unit_ids": "u1", "date_from": "2026-03-01", "date_to": "2026-03-01"},
        ).json()
        assert [r["status"] for r in records] == ["booked"]

    def test_malformed_date_in_path(self, client):
        response = client.put(f"{BASE}/u1/2026-02-30", json={"status": "booked"})

        assert response.status_code == 422
        assert response.json()["code"] == "validation_error"
        assert response.json()["retryable"] is False

    def test_unknown_status_in_body(self, client):
        response = client.put(f"{BASE}/u1/2026-03-01", json={"status": "vacant"})
        assert response.status_code == 422

    def test_stale_version_conflict(self, client):
        client.put(f"{BASE}/u1/2026-03-01", json={"status": "booked"})

        response = client.put(
            f"{BASE}/u1/2026-03-01",
            json={"status": "maintenance", "expected_version": 0},
        )

        assert response.status_code == 409
        assert response.json()["code"] == "conflict"
        assert response.json()["current_version"] == 1

    def test_optimistic_locking_requires_version(self, client):
        from unit_availability.config import settings

        with patch.object(settings, "optimistic_locking", True):
            response = client.put(f"{BASE}/u1/2026-03-01", json={"status": "booked"})

        assert response.status_code == 422
        assert response.json()["field"] == "expected_version"

    def test_clear(self, client):
        client.put(f"{BASE}/u1/2026-03-01", json={"status": "booked"})

        response = client.delete(f"{BASE}/u1/2026-03-01")

        assert response.status_code == 200
        assert response.json() == {
            "unit_id": "u1", "date": "2026-03-01", "cleared": True, "status": "available",
        }
        assert client.delete(f"{BASE}/u1/2026-03-01").json()["cleared"] is False

    def test_inverted_range(self, client):
        response = client.get(
            f"{BASE}/range",
            params={"unit_ids": "u1", "date_from": "2026-03-05", "date_to": "2026-03-01"},
        )
        assert response.status_code == 422


class TestBulkEndpoint:

    def test_explicit_dates(self, client):
        response = client.post(f"{BASE}/bulk", json={
            "unit_ids": ["u1", "u2"],
            "dates": ["2026-03-01", "2026-03-02"],
            "status": "maintenance",
            "maintenance_type": "painting",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["updated"] == 4
        assert body["unit_count"] == 2
        assert body["date_count"] == 2

    def test_inclusive_range(self, client):
        response = client.post(f"{BASE}/bulk", json={
            "unit_ids": ["u1"],
            "date_from": "2026-03-01",
            "date_to": "2026-03-03",
            "status": "reserved",
        })

        assert response.json()["updated"] == 3

    def test_empty_units_is_bad_request(self, client):
        response = client.post(f"{BASE}/bulk", json={
            "unit_ids": [],
            "dates": ["2026-03-01"],
            "status": "booked",
        })

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_request"

    def test_empty_dates_is_bad_request(self, client):
        response = client.post(f"{BASE}/bulk", json={
            "unit_ids": ["u1"],
            "dates": [],
            "status": "booked",
        })
        assert response.status_code == 400

    def test_dates_and_range_together_rejected(self, client):
        response = client.post(f"{BASE}/bulk", json={
            "unit_ids": ["u1"],
            "dates": ["2026-03-01"],
            "date_from": "2026-03-01",
            "date_to": "2026-03-02",
            "status": "booked",
        })
        assert response.status_code == 422

    def test_nothing_written_on_invalid_unit(self, client):
        response = client.post(f"{BASE}/bulk", json={
            "unit_ids": ["u1", "   "],
            "dates": ["2026-03-01"],
            "status": "booked",
        })

        assert response.status_code == 422
        records = client.get(
            f"{BASE}/range",
            params={"unit_ids": "u1", "date_from": "2026-03-01", "date_to": "2026-03-01"},
        ).json()
        assert records == []

    def test_huge_range_rejected(self, client):
        response = client.post(f"{BASE}/bulk", json={
            "unit_ids": ["u1"],
            "date_from": "0001-01-01",
            "date_to": "9999-12-31",
            "status": "booked",
        })

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_request"


class TestReadEndpoints:

    def test_count_with_explicit_units(self, client):
        client.put(f"{BASE}/u1/2026-03-01", json={"status": "booked"})

        response = client.get(f"{BASE}/count", params=[
            ("date", "2026-03-01"), ("unit_ids", "u1"), ("unit_ids", "u2"), ("unit_ids", "u3"),
        ])

        body = response.json()
        assert response.status_code == 200
        assert body["universe_size"] == 3
        assert body["available"] == 2
        assert body["by_status"]["booked"] == 1
        assert body["by_status"]["maintenance"] == 0

    def test_count_scoped_to_property(self, client, catalog_units):
        client.put(f"{BASE}/unit-a/2026-03-01", json={"status": "booked"})
        client.put(f"{BASE}/unit-z/2026-03-01", json={"status": "booked"})

        body = client.get(f"{BASE}/count", params={"date": "2026-03-01", "property_id": "p1"}).json()

        assert body["universe_size"] == 3
        assert body["available"] == 2

    def test_list_units(self, client, catalog_units):
        assert client.get(f"{BASE}/units", params={"property_id": "p1"}).json() == catalog_units
        assert len(client.get(f"{BASE}/units").json()) == 4

    def test_grid(self, client, catalog_units):
        client.put(f"{BASE}/unit-b/2026-03-02", json={"status": "maintenance"})

        response = client.get(f"{BASE}/grid", params={"start": "2026-03-01", "days": 3, "property_id": "p1"})

        body = response.json()
        assert response.status_code == 200
        assert body["dates"] == ["2026-03-01", "2026-03-02", "2026-03-03"]
        assert [row["unit_id"] for row in body["rows"]] == catalog_units
        unit_b = body["rows"][1]["cells"]
        assert [c["status"] for c in unit_b] == ["available", "maintenance", "available"]
        assert body["available_counts"]["2026-03-02"] == 2

    def test_grid_too_wide(self, client):
        response = client.get(f"{BASE}/grid", params={"start": "2026-03-01", "days": 90, "unit_ids": "u1"})

        assert response.status_code == 400

    def test_summary(self, client):
        client.post(f"{BASE}/bulk", json={
            "unit_ids": ["u1"],
            "date_from": "2026-03-01",
            "date_to": "2026-03-02",
            "status": "booked",
        })

        response = client.get(f"{BASE}/summary", params=[
            ("date_from", "2026-03-01"), ("date_to", "2026-03-03"), ("unit_ids", "u1"), ("unit_ids", "u2"),
        ])

        assert [day["available"] for day in response.json()] == [1, 1, 2]

    def test_summary_window_limit(self, client):
        response = client.get(f"{BASE}/summary", params={
            "date_from": "2026-01-01", "date_to": "2026-06-01", "unit_ids": "u1",
        })

        assert response.status_code == 422
        assert response.json()["field"] == "date_to"

    def test_filter(self, client):
        client.put(f"{BASE}/u2/2026-03-01", json={"status": "out_of_service"})

        body = client.get(f"{BASE}/filter", params=[
            ("date", "2026-03-01"), ("status", "AVAILABLE"), ("unit_ids", "u1"), ("unit_ids", "u2"),
        ]).json()

        assert body["status"] == "available"
        assert body["unit_ids"] == ["u1"]


class TestHealth:

    def test_live(self, client):
        assert client.get("/health/live").json()["status"] == "alive"

    def test_ready(self, client):
        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["database"]["status"] == "up"

    def test_request_id_echoed(self, client):
        response = client.get("/health/live", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"
