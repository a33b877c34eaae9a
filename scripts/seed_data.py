"""
Seed the local database with a department, a small reporting chain and the vehicle pool.

Usage:
  python scripts/seed_data.py

This script is idempotent: running it multiple times will upsert the same
records based on unique fields (email for users, license plate for vehicles).
"""

from datetime import datetime, timezone
from typing import Optional

from carbooking.db import SessionLocal, Base, engine
from carbooking.models.models import Department, User, Vehicle
from carbooking.auth.security import get_password_hash


def ensure_department(session, code: str, name: str) -> Department:
    dept = session.query(Department).filter(Department.code == code).first()
    if dept:
        dept.name = name
        session.flush()
        return dept
    dept = Department(code=code, name=name)
    session.add(dept)
    session.flush()
    return dept


def ensure_user(
    session,
    email: str,
    name: str,
    password: str,
    role: str,
    department: Optional[Department] = None,
    manager: Optional[User] = None,
) -> User:
    user = session.query(User).filter(User.email == email).first()
    if user:
        user.name = name
        user.role = role
        user.department_id = department.id if department else user.department_id
        user.manager_id = manager.id if manager else user.manager_id
        # Keep an existing password
        if not user.password_hash:
            user.password_hash = get_password_hash(password)
        session.flush()
        return user
    user = User(
        email=email,
        name=name,
        password_hash=get_password_hash(password),
        role=role,
        department_id=department.id if department else None,
        manager_id=manager.id if manager else None,
        is_active=True,
        created_at=datetime.now(timezone.utc),
    )
    session.add(user)
    session.flush()
    return user


def ensure_vehicle(session, license_plate: str, name: str, type_: str, seats: int, image_url: Optional[str] = None) -> Vehicle:
    vehicle = session.query(Vehicle).filter(Vehicle.license_plate == license_plate).first()
    if vehicle:
        vehicle.name = name
        vehicle.type = type_
        vehicle.seats = seats
        vehicle.image_url = image_url
        session.flush()
        return vehicle
    vehicle = Vehicle(license_plate=license_plate, name=name, type=type_, seats=seats, image_url=image_url)
    session.add(vehicle)
    session.flush()
    return vehicle


def main() -> None:
    # Ensure tables exist (safe for SQLite dev)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        ops = ensure_department(session, "OPS", "Operations")
        people = ensure_department(session, "HR", "Human Resources")

        admin = ensure_user(session, "admin@example.com", "Ada Admin", "TestAdmin123!", "admin", people)
        hr = ensure_user(session, "hr@example.com", "Hana Resources", "TestUser123!", "hr", people)
        manager = ensure_user(session, "manager@example.com", "Mark Manager", "TestUser123!", "manager", ops)
        ensure_user(session, "employee@example.com", "Eve Employee", "TestUser123!", "employee", ops, manager=manager)
        ensure_user(session, "driver@example.com", "Dan Driver", "TestUser123!", "employee", ops, manager=manager)

        ensure_vehicle(session, "AB12 CDE", "Toyota Camry", "sedan", 5)
        ensure_vehicle(session, "FG34 HIJ", "Honda CR-V", "suv", 5)
        ensure_vehicle(session, "KL56 MNO", "VW Polo", "compact", 4)
        ensure_vehicle(session, "PQ78 RST", "Toyota Land Cruiser", "large-suv", 7)
        ensure_vehicle(session, "UV90 WXY", "Ford Transit", "van", 9)

        session.commit()
        print(f"Seeded users: {admin.email}, {hr.email}, {manager.email} (+2 employees) and 5 vehicles")
    finally:
        session.close()


if __name__ == "__main__":
    main()
