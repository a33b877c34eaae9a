from datetime import date, timedelta

import pytest

from carbooking.main import app
from carbooking.rate_limit import limiter

from conftest import auth_headers


def day(offset: int) -> str:
    return (date.today() + timedelta(days=offset)).isoformat()


def booking_body(vehicle_id, offset=3, start="09:00", end="17:00", **overrides):
    body = {
        "vehicle_id": str(vehicle_id),
        "departure_date": day(offset),
        "departure_time": start,
        "return_date": day(offset),
        "return_time": end,
        "destination": "Client HQ",
        "reason": "client-meeting",
        "travelers": [{"name": "Eve Employee", "type": "driver", "is_primary": True}],
    }
    body.update(overrides)
    return body


def create(client, user, vehicle_id, **kwargs):
    return client.post("/bookings", json=booking_body(vehicle_id, **kwargs), headers=auth_headers(user))


def test_requires_authentication(client, seed):
    assert client.get("/bookings").status_code == 401
    assert client.post("/bookings", json=booking_body(seed.sedan.id)).status_code == 401


def test_create_and_fetch_booking(client, seed):
    resp = create(client, seed.employee, seed.sedan.id)
    assert resp.status_code == 201, resp.text
    data = resp.json()
    assert data["status"] == "pending_manager"
    assert data["departure_time"] == "09:00"
    assert data["return_time"] == "17:00"
    assert len(data["travelers"]) == 1
    assert [(a["approval_level"], a["status"]) for a in data["approvals"]] == [("manager", "pending")]

    fetched = client.get(f"/bookings/{data['id']}", headers=auth_headers(seed.manager))
    assert fetched.status_code == 200
    assert fetched.json()["id"] == data["id"]

    denied = client.get(f"/bookings/{data['id']}", headers=auth_headers(seed.colleague))
    assert denied.status_code == 403
    assert denied.json()["error"] == "forbidden"


def test_conflict_returns_409(client, seed):
    assert create(client, seed.employee, seed.sedan.id).status_code == 201
    resp = create(client, seed.colleague, seed.sedan.id, start="12:00", end="13:00")
    assert resp.status_code == 409
    body = resp.json()
    assert body["error"] == "conflict"
    assert body["detail"] == "Vehicle is already booked for the selected time period"
    assert len(body["details"]["conflicting_booking_ids"]) == 1


def test_notification_failure_still_returns_created(client, seed, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("mail relay down")

    monkeypatch.setattr(app.state.services.notifications, "booking_created", boom)
    resp = create(client, seed.employee, seed.sedan.id)
    assert resp.status_code == 201, resp.text

    fetched = client.get(f"/bookings/{resp.json()['id']}", headers=auth_headers(seed.employee))
    assert fetched.json()["status"] == "pending_manager"
    assert client.get("/notifications/unread-count", headers=auth_headers(seed.manager)).json() == {"count": 0}


def test_no_manager_returns_400(client, seed):
    resp = create(client, seed.orphan, seed.sedan.id)
    assert resp.status_code == 400
    assert resp.json()["error"] == "validation_error"
    assert resp.json()["detail"] == "No manager assigned to your account. Please contact HR."


@pytest.mark.parametrize("overrides", [
    {"departure_date": "2030/01/01"},
    {"departure_time": "9am"},
    {"travelers": []},
    {"number_of_drivers": 5},
    {"destination": ""},
    {"reason": "joyride"},
])
def test_invalid_payload_returns_400(client, seed, overrides):
    resp = client.post("/bookings", json=booking_body(seed.sedan.id, **overrides), headers=auth_headers(seed.employee))
    assert resp.status_code == 400
    assert resp.json()["error"] == "validation_error"


def test_past_departure_rejected(client, seed):
    resp = create(client, seed.employee, seed.sedan.id, offset=-2)
    assert resp.status_code == 400
    assert "past" in resp.json()["detail"]


def test_unknown_vehicle_returns_404(client, seed):
    resp = create(client, seed.employee, "00000000-0000-0000-0000-000000000001")
    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"


def test_check_conflicts_endpoint(client, seed):
    booking_id = create(client, seed.employee, seed.sedan.id).json()["id"]
    body = {
        "vehicle_id": str(seed.sedan.id),
        "departure_date": day(3),
        "departure_time": "17:00",
        "return_date": day(3),
        "return_time": "18:00",
    }
    resp = client.post("/bookings/check-conflicts", json=body, headers=auth_headers(seed.colleague))
    assert resp.status_code == 200
    assert resp.json()["has_conflicts"] is True
    assert [c["id"] for c in resp.json()["conflicts"]] == [booking_id]

    body["exclude_booking_id"] = booking_id
    resp = client.post("/bookings/check-conflicts", json=body, headers=auth_headers(seed.colleague))
    assert resp.json() == {"has_conflicts": False, "conflicts": []}

    body.update(exclude_booking_id=None, departure_time="18:00", return_time="17:00")
    resp = client.post("/bookings/check-conflicts", json=body, headers=auth_headers(seed.colleague))
    assert resp.status_code == 400
    assert resp.json()["error"] == "validation_error"


def test_approval_flow_over_http(client, seed):
    booking_id = create(client, seed.employee, seed.sedan.id).json()["id"]

    pending = client.get("/approvals/pending", headers=auth_headers(seed.manager)).json()
    assert [p["booking_id"] for p in pending] == [booking_id]
    assert pending[0]["booking"]["id"] == booking_id

    resp = client.post("/approvals/approve", json={"booking_id": booking_id, "comments": "ok"}, headers=auth_headers(seed.manager))
    assert resp.status_code == 200
    assert resp.json()["status"] == "pending_hr"

    resp = client.post("/approvals/reject", json={"booking_id": booking_id, "comments": ""}, headers=auth_headers(seed.hr))
    assert resp.status_code == 400
    assert resp.json()["error"] == "validation_error"

    resp = client.post("/approvals/reject", json={"booking_id": booking_id, "comments": "no"}, headers=auth_headers(seed.hr))
    assert resp.status_code == 200
    assert resp.json()["status"] == "rejected"

    resp = client.post("/approvals/approve", json={"booking_id": booking_id}, headers=auth_headers(seed.hr))
    assert resp.status_code == 409
    assert resp.json()["error"] == "invalid_state"

    history = client.get("/approvals/history", headers=auth_headers(seed.hr)).json()
    assert history["pagination"]["total"] == 1
    assert history["approvals"][0]["status"] == "rejected"


def test_wrong_approver_forbidden(client, seed):
    booking_id = create(client, seed.employee, seed.sedan.id).json()["id"]
    resp = client.post("/approvals/approve", json={"booking_id": booking_id}, headers=auth_headers(seed.other_manager))
    assert resp.status_code == 403


def test_cancel_endpoint(client, seed):
    booking_id = create(client, seed.employee, seed.sedan.id).json()["id"]
    assert client.post(f"/bookings/{booking_id}/cancel", headers=auth_headers(seed.colleague)).status_code == 403
    resp = client.post(f"/bookings/{booking_id}/cancel", headers=auth_headers(seed.employee))
    assert resp.status_code == 200
    assert resp.json()["status"] == "cancelled"
    assert client.post(f"/bookings/{booking_id}/cancel", headers=auth_headers(seed.employee)).status_code == 409


def test_list_endpoint_visibility(client, seed):
    create(client, seed.employee, seed.sedan.id)
    create(client, seed.outsider, seed.van.id)

    mine = client.get("/bookings", headers=auth_headers(seed.employee)).json()
    assert mine["pagination"] == {"page": 1, "limit": 20, "total": 1, "total_pages": 1}

    resp = client.get("/bookings", params={"user_id": str(seed.outsider.id)}, headers=auth_headers(seed.manager))
    assert resp.status_code == 403

    everything = client.get("/bookings", headers=auth_headers(seed.hr)).json()
    assert everything["pagination"]["total"] == 2

    resp = client.get("/bookings", params={"limit": 101}, headers=auth_headers(seed.hr))
    assert resp.status_code == 400


def test_booking_rate_limit(client, seed):
    limiter.reset()
    limiter.enabled = True
    try:
        statuses = [
            create(client, seed.employee, seed.sedan.id, offset=3 + i).status_code
            for i in range(6)
        ]
    finally:
        limiter.enabled = False
        limiter.reset()
    assert statuses[:5] == [201] * 5
    assert statuses[5] == 429


def test_login_refresh_and_me(client, seed):
    resp = client.post("/auth/login", json={"identifier": "Employee@example.com", "password": "Secret123!"})
    assert resp.status_code == 200
    tokens = resp.json()

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"}).json()
    assert me["email"] == "employee@example.com"
    assert me["role"] == "employee"
    assert me["manager_id"] == str(seed.manager.id)

    refreshed = client.post("/auth/refresh", params={"token": tokens["refresh_token"]})
    assert refreshed.status_code == 200
    # refresh tokens are not accepted as access tokens
    assert client.get("/auth/me", headers={"Authorization": f"Bearer {tokens['refresh_token']}"}).status_code == 401


def test_login_with_bad_password(client, seed):
    resp = client.post("/auth/login", json={"identifier": "employee@example.com", "password": "nope"})
    assert resp.status_code == 401


def test_request_id_header(client, seed):
    resp = client.get("/vehicles", headers={"X-Request-ID": "abc-123"})
    assert resp.headers["X-Request-ID"] == "abc-123"

    generated = client.get("/vehicles").headers["X-Request-ID"]
    assert len(generated) == 36
    assert generated != client.get("/vehicles").headers["X-Request-ID"]
