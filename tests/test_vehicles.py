import uuid

import pytest

from carbooking.errors import NotFoundError, ValidationError
from carbooking.models.models import AuditLog
from carbooking.services.vehicles import working_days
from carbooking.services.datetime_rules import parse_date

from conftest import auth_headers, booking_details


def test_list_vehicles_sorted_by_name(client, seed):
    resp = client.get("/vehicles")
    assert resp.status_code == 200
    assert [v["name"] for v in resp.json()] == ["Ford Transit", "Honda CR-V", "Toyota Camry"]


def test_availability_excludes_booked_and_maintenance(db, seed, services):
    services.bookings.create_booking(db, booking_details(seed.sedan.id), seed.employee)

    free = services.vehicles.available_vehicles(db, "2025-06-01", "10:00", "11:00")
    assert [v.id for v in free] == [seed.van.id]

    # touching the booked window still counts as booked
    free = services.vehicles.available_vehicles(db, "2025-06-01", "17:00", "18:00")
    assert seed.sedan.id not in {v.id for v in free}

    free = services.vehicles.available_vehicles(db, "2025-06-01", "17:30", "18:00")
    assert {v.id for v in free} == {seed.sedan.id, seed.van.id}


def test_availability_ignores_cancelled(db, seed, services):
    booking = services.bookings.create_booking(db, booking_details(seed.sedan.id), seed.employee)
    services.bookings.cancel_booking(db, booking.id, seed.employee)
    free = services.vehicles.available_vehicles(db, "2025-06-01", "10:00", "11:00")
    assert seed.sedan.id in {v.id for v in free}


def test_availability_rejects_inverted_window(db, seed, services):
    with pytest.raises(ValidationError):
        services.vehicles.available_vehicles(db, "2025-06-01", "11:00", "10:00")


def test_set_maintenance(db, seed, services):
    vehicle = services.vehicles.set_maintenance(db, seed.sedan.id, True, seed.admin)
    assert vehicle.status == "maintenance"
    assert services.vehicles.available_vehicles(db, "2025-06-01", "10:00", "11:00") == [
        v for v in services.vehicles.list_vehicles(db) if v.id == seed.van.id
    ]
    vehicle = services.vehicles.set_maintenance(db, seed.sedan.id, False, seed.admin)
    assert vehicle.status == "available"
    assert db.query(AuditLog).filter(AuditLog.entity_id == seed.sedan.id, AuditLog.action == "MAINTENANCE").count() == 2


def test_set_maintenance_unknown_vehicle(db, seed, services):
    with pytest.raises(NotFoundError):
        services.vehicles.set_maintenance(db, uuid.uuid4(), True, seed.admin)


def test_maintenance_endpoint_admin_only(client, seed):
    path = f"/vehicles/{seed.van.id}/maintenance"
    assert client.post(path, json={"in_maintenance": True}, headers=auth_headers(seed.hr)).status_code == 403
    resp = client.post(path, json={"in_maintenance": True}, headers=auth_headers(seed.admin))
    assert resp.status_code == 200
    assert resp.json()["status"] == "maintenance"


def test_working_days():
    # Mon 2 June 2025 .. Sun 8 June 2025
    assert working_days(parse_date("2025-06-02"), parse_date("2025-06-08")) == 5
    assert working_days(parse_date("2025-06-07"), parse_date("2025-06-08")) == 0


def test_utilization(db, seed, services):
    booking = services.bookings.create_booking(
        db, booking_details(seed.sedan.id, departure_date="2025-06-02", return_date="2025-06-02"), seed.employee
    )
    services.approvals.approve(db, booking.id, seed.manager)
    services.approvals.approve(db, booking.id, seed.hr)
    # still pending, not counted
    services.bookings.create_booking(
        db, booking_details(seed.van.id, departure_date="2025-06-03", return_date="2025-06-03"), seed.employee
    )

    report = {row["vehicle"].id: row for row in services.vehicles.utilization(db, "2025-06-02", "2025-06-08")}
    assert report[seed.sedan.id]["bookings_count"] == 1
    assert report[seed.sedan.id]["total_hours"] == 8.0
    assert report[seed.sedan.id]["utilization_rate"] == 20.0
    assert report[seed.van.id]["bookings_count"] == 0
    assert report[seed.van.id]["utilization_rate"] == 0.0


def test_utilization_endpoint(client, seed):
    params = {"start_date": "2025-06-02", "end_date": "2025-06-08"}
    assert client.get("/vehicles/utilization", params=params, headers=auth_headers(seed.manager)).status_code == 403
    resp = client.get("/vehicles/utilization", params=params, headers=auth_headers(seed.admin))
    assert resp.status_code == 200
    assert len(resp.json()) == 3
