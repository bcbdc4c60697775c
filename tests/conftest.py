import os
import tempfile
from datetime import date, time, timedelta

# The engine is built at import time, point it at a throwaway SQLite file first
_DB_DIR = tempfile.mkdtemp(prefix="campus-bus-tests-")
os.environ["DB_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'campus_bus.db')}"

import fakeredis
import pytest
from fastapi.testclient import TestClient

from campus_bus.src import argon2
from campus_bus.src.booking import qr
from campus_bus.src.db import (
    ORMbase,
    Operator,
    Student,
    Trip,
    engine,
    sessionMaker,
)
from campus_bus.src.enums import AccountStatus, TripRoute, TripStatus

PASSWORD = "password123"
PASSWORD_HASH = argon2.makePassword(PASSWORD)


@pytest.fixture(autouse=True)
def database():
    ORMbase.metadata.create_all(engine)
    yield
    ORMbase.metadata.drop_all(engine)


@pytest.fixture(autouse=True)
def redis(monkeypatch):
    client = fakeredis.FakeRedis(decode_responses=True)
    monkeypatch.setattr("campus_bus.src.redis.redisClient", client)
    return client


@pytest.fixture(autouse=True)
def audit(monkeypatch):
    events = []
    monkeypatch.setattr("campus_bus.src.openobserve.logEvent", events.append)
    return events


@pytest.fixture
def uploads(monkeypatch):
    objects = {}

    def uploadBytes(bucketName, objectID, data, contentType):
        objects[(bucketName, objectID)] = (data, contentType)

    def deleteFile(bucketName, objectID):
        del objects[(bucketName, objectID)]

    monkeypatch.setattr("campus_bus.api.incident_report.uploadBytes", uploadBytes)
    monkeypatch.setattr("campus_bus.api.incident_report.deleteFile", deleteFile)
    return objects


@pytest.fixture
def session():
    session = sessionMaker()
    yield session
    session.close()


@pytest.fixture
def client():
    from campus_bus.main import app

    with TestClient(app) as client:
        yield client


def tripDate(days: int = 2) -> date:
    return date.today() + timedelta(days=days)


def makeTrip(
    session,
    capacity: int = 2,
    faculty_reserved: int = 0,
    route: TripRoute = TripRoute.CAMPUS_TO_CITY,
    trip_date: date | None = None,
    departure_time: time = time(17, 30),
    status: TripStatus = TripStatus.SCHEDULED,
) -> Trip:
    privateKey, publicKey = qr.newKeyPair()
    trip = Trip(
        route=route,
        destination="Raja Park",
        bus_number="RJ14 PA 1234",
        trip_date=trip_date or tripDate(),
        departure_time=departure_time,
        capacity=capacity,
        faculty_reserved=faculty_reserved,
        booked_count=0,
        status=status,
        private_key=privateKey,
        public_key=publicKey,
    )
    session.add(trip)
    session.commit()
    return trip


def makeStudent(
    session, name: str = "Asha", status: AccountStatus = AccountStatus.ACTIVE
) -> Student:
    student = Student(
        email=f"{name.lower()}@lnmiit.ac.in",
        name=name,
        password=PASSWORD_HASH,
        room="BH1-101",
        phone="+919496801157",
        status=status,
    )
    session.add(student)
    session.commit()
    return student


def makeOperator(session, employee_id: str = "driver", manage_trip: bool = False):
    operator = Operator(
        employee_id=employee_id,
        password=PASSWORD_HASH,
        full_name=employee_id.title(),
        manage_trip=manage_trip,
    )
    session.add(operator)
    session.commit()
    return operator


def studentHeader(client, email: str) -> dict:
    response = client.post(
        "/student/auth/login", json={"email": email, "password": PASSWORD}
    )
    assert response.status_code == 201, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


def operatorHeader(client, employee_id: str) -> dict:
    response = client.post(
        "/operator/login", json={"employeeId": employee_id, "password": PASSWORD}
    )
    assert response.status_code == 201, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}
