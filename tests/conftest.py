import os
import tempfile
from datetime import datetime
from types import SimpleNamespace

# Settings are read at import time
_tmpdir = tempfile.mkdtemp(prefix="carbooking-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmpdir, 'import.db')}"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["ENABLE_EMAIL"] = "true"
os.environ["AUTO_CREATE_DB"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from carbooking.auth.security import create_access_token, get_password_hash
from carbooking.db import Base, get_db, make_engine
from carbooking.main import app
from carbooking.models.models import Department, User, Vehicle
from carbooking.schemas.bookings import BookingCreate, TravelerInput, TravelerType
from carbooking.services.container import build_services

# Wall clock used by service-level tests
NOW = datetime(2025, 5, 20, 8, 0)


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True, expire_on_commit=False)


@pytest.fixture
def seed(session_factory):
    with session_factory() as s:
        ops = Department(name="Operations", code="OPS")
        s.add(ops)
        s.flush()

        def user(email, name, role, manager=None, password="Secret123!"):
            row = User(
                email=email,
                name=name,
                role=role,
                password_hash=get_password_hash(password),
                department_id=ops.id,
                manager_id=manager.id if manager else None,
            )
            s.add(row)
            s.flush()
            return row

        admin = user("admin@example.com", "Ada Admin", "admin")
        hr = user("hr@example.com", "Hana Resources", "hr")
        manager = user("manager@example.com", "Mark Manager", "manager")
        other_manager = user("other.manager@example.com", "Olga Other", "manager")
        employee = user("employee@example.com", "Eve Employee", "employee", manager=manager)
        colleague = user("colleague@example.com", "Carl Colleague", "employee", manager=manager)
        outsider = user("outsider@example.com", "Otto Outsider", "employee", manager=other_manager)
        orphan = user("orphan@example.com", "Nora Nomanager", "employee")

        sedan = Vehicle(name="Toyota Camry", type="sedan", seats=5, license_plate="AB12 CDE")
        van = Vehicle(name="Ford Transit", type="van", seats=9, license_plate="UV90 WXY")
        broken = Vehicle(name="Honda CR-V", type="suv", seats=5, license_plate="FG34 HIJ", status="maintenance")
        s.add_all([sedan, van, broken])
        s.commit()

    return SimpleNamespace(
        admin=admin,
        hr=hr,
        manager=manager,
        other_manager=other_manager,
        employee=employee,
        colleague=colleague,
        outsider=outsider,
        orphan=orphan,
        sedan=sedan,
        van=van,
        broken=broken,
    )


@pytest.fixture
def db(session_factory, seed):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def services():
    return build_services(clock=lambda: NOW, enable_email=True)


@pytest.fixture
def client(session_factory, seed):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(str(user.id), role=user.role)}"}


def booking_details(vehicle_id, departure_date="2025-06-01", departure_time="09:00",
                    return_date="2025-06-01", return_time="17:00", **overrides):
    """Request body for service calls, built without the request-time clock check."""
    fields = dict(
        vehicle_id=vehicle_id,
        departure_date=departure_date,
        departure_time=departure_time,
        return_date=return_date,
        return_time=return_time,
        destination="Client HQ",
        reason="client-meeting",
        reason_details=None,
        number_of_drivers=1,
        number_of_companions=0,
        travelers=[TravelerInput(name="Eve Employee", type=TravelerType.driver, is_primary=True)],
    )
    fields.update(overrides)
    return BookingCreate.model_construct(**fields)
