import base64
from io import BytesIO

import pytest
from PIL import Image
from sqlalchemy.orm import Session

from campus_bus.src.constants import INCIDENT_PICTURES, MAX_PENALTY_COUNT
from campus_bus.src.db import IncidentReport, Student, TripTrace
from campus_bus.src.enums import AccountStatus

from conftest import (
    makeOperator,
    makeStudent,
    makeTrip,
    operatorHeader,
    studentHeader,
    tripDate,
)


def pictureBase64(size=(1600, 900)) -> str:
    with BytesIO() as buffer:
        Image.new("RGB", size, color=(200, 30, 30)).save(buffer, "PNG")
        return base64.b64encode(buffer.getvalue()).decode()


def book(client, header, tripID):
    response = client.post("/student/bookings", json={"tripId": tripID}, headers=header)
    assert response.status_code == 201, response.text
    return response.json()


def test_login(client, session):
    operator = makeOperator(session, "driver")
    response = client.post(
        "/operator/login", json={"employeeId": "driver", "password": "password123"}
    )
    assert response.status_code == 201
    body = response.json()
    assert body["operatorId"] == operator.id
    assert body["employeeId"] == "driver"
    assert body["manageTrip"] is False

    response = client.post(
        "/operator/login", json={"employeeId": "driver", "password": "nope"}
    )
    assert response.status_code == 401


def test_create_trip_needs_permission(client, session):
    makeOperator(session, "driver")
    makeOperator(session, "admin", manage_trip=True)
    tripData = {
        "route": "CITY_TO_CAMPUS",
        "destination": "Campus",
        "busNumber": "RJ14 PA 1234",
        "tripDate": tripDate().isoformat(),
        "departureTime": "21:00",
        "capacity": 40,
        "facultyReserved": 4,
    }

    response = client.post(
        "/operator/trips", json=tripData, headers=operatorHeader(client, "driver")
    )
    assert response.status_code == 403

    response = client.post(
        "/operator/trips", json=tripData, headers=operatorHeader(client, "admin")
    )
    assert response.status_code == 201, response.text
    trip = response.json()
    assert trip["status"] == "SCHEDULED"
    assert trip["availableSeats"] == 36
    assert "privateKey" not in trip


def test_create_trip_with_too_many_reserved_seats(client, session):
    makeOperator(session, "admin", manage_trip=True)
    tripData = {
        "route": "CAMPUS_TO_CITY",
        "destination": "Raja Park",
        "busNumber": "RJ14 PA 1234",
        "tripDate": tripDate().isoformat(),
        "departureTime": "08:30",
        "capacity": 10,
        "facultyReserved": 11,
    }
    response = client.post(
        "/operator/trips", json=tripData, headers=operatorHeader(client, "admin")
    )
    assert response.status_code == 406


def test_trip_list_and_start(client, session):
    trip = makeTrip(session)
    makeOperator(session, "driver")
    header = operatorHeader(client, "driver")

    trips = client.get(
        "/operator/trips", params={"date": tripDate().isoformat()}, headers=header
    ).json()
    assert [t["tripId"] for t in trips] == [trip.id]

    response = client.post(
        "/operator/trips/start", json={"tripId": trip.id}, headers=header
    )
    assert response.status_code == 200
    assert response.json()["status"] == "ACTIVE"
    assert response.json()["startedOn"] is not None

    response = client.post(
        "/operator/trips/start", json={"tripId": trip.id}, headers=header
    )
    assert response.status_code == 406

    response = client.patch(
        "/operator/trips", json={"id": trip.id, "status": "COMPLETED"}, headers=header
    )
    assert response.status_code == 200
    assert response.json()["status"] == "COMPLETED"


def test_cancel_trip(client, session):
    trip = makeTrip(session, capacity=1)
    makeStudent(session, "Asha")
    makeStudent(session, "Bala")
    makeOperator(session, "driver")
    makeOperator(session, "admin", manage_trip=True)
    book(client, studentHeader(client, "asha@lnmiit.ac.in"), trip.id)
    book(client, studentHeader(client, "bala@lnmiit.ac.in"), trip.id)

    patch = {"id": trip.id, "status": "CANCELLED"}
    response = client.patch(
        "/operator/trips", json=patch, headers=operatorHeader(client, "driver")
    )
    assert response.status_code == 403

    response = client.patch(
        "/operator/trips", json=patch, headers=operatorHeader(client, "admin")
    )
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "CANCELLED"
    assert body["bookedCount"] == 0
    assert body["waitlistCount"] == 0


def test_scan_passengers(client, session):
    trip = makeTrip(session, capacity=1)
    makeStudent(session, "Asha")
    makeStudent(session, "Bala")
    makeOperator(session, "driver")
    confirmed = book(client, studentHeader(client, "asha@lnmiit.ac.in"), trip.id)
    book(client, studentHeader(client, "bala@lnmiit.ac.in"), trip.id)
    header = operatorHeader(client, "driver")

    passengers = client.get(f"/operator/trips/{trip.id}/passengers", headers=header)
    assert [p["studentName"] for p in passengers.json()] == ["Asha"]

    scan = {"qrToken": confirmed["qrToken"], "tripId": trip.id}
    first = client.post("/operator/qr/validate", json=scan, headers=header).json()
    assert first["status"] == "VALID"
    assert first["studentName"] == "Asha"
    second = client.post("/operator/qr/validate", json=scan, headers=header).json()
    assert second["status"] == "DUPLICATE"

    forged = {"qrToken": "1garbage", "tripId": trip.id}
    third = client.post("/operator/qr/validate", json=forged, headers=header).json()
    assert third["status"] == "INVALID"
    assert third["studentName"] is None

    passengers = client.get(f"/operator/trips/{trip.id}/passengers", headers=header)
    assert passengers.json()[0]["status"] == "SCANNED"


def test_admin_cancel_promotes(client, session):
    trip = makeTrip(session, capacity=1)
    makeStudent(session, "Asha")
    makeStudent(session, "Bala")
    makeOperator(session, "driver")
    makeOperator(session, "admin", manage_trip=True)
    confirmed = book(client, studentHeader(client, "asha@lnmiit.ac.in"), trip.id)
    waiting = book(client, studentHeader(client, "bala@lnmiit.ac.in"), trip.id)
    url = f"/operator/bookings/{confirmed['bookingId']}"

    assert client.delete(url, headers=operatorHeader(client, "driver")).status_code == 403
    response = client.delete(url, headers=operatorHeader(client, "admin"))
    assert response.status_code == 200
    assert response.json()["promotedBookingId"] == waiting["bookingId"]


def test_incident_reports_block_student(client, session, uploads):
    trip = makeTrip(session)
    student = makeStudent(session)
    makeOperator(session, "driver")
    header = operatorHeader(client, "driver")

    report = {
        "tripId": trip.id,
        "studentId": student.id,
        "incidentType": "NO_VALID_QR",
        "description": "Boarded without a ticket",
        "photoBase64": pictureBase64(),
    }
    response = client.post("/operator/reports", json=report, headers=header)
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["penaltyCount"] == 1
    assert body["isBlocked"] is False
    assert (INCIDENT_PICTURES, body["picture"]) in uploads
    stored, contentType = uploads[(INCIDENT_PICTURES, body["picture"])]
    assert contentType == "image/jpeg"
    assert max(Image.open(BytesIO(stored)).size) <= 1280

    report.pop("photoBase64")
    for _ in range(MAX_PENALTY_COUNT - 1):
        body = client.post("/operator/reports", json=report, headers=header).json()
    assert body["penaltyCount"] == MAX_PENALTY_COUNT
    assert body["isBlocked"] is True

    student = session.query(Student).filter(Student.id == student.id).populate_existing().one()
    assert student.status == AccountStatus.BLOCKED
    response = client.post(
        "/student/bookings",
        json={"tripId": trip.id},
        headers=studentHeader(client, "asha@lnmiit.ac.in"),
    )
    assert response.status_code == 403


def test_incident_report_rejects_non_images(client, session, uploads):
    trip = makeTrip(session)
    student = makeStudent(session)
    makeOperator(session, "driver")
    report = {
        "tripId": trip.id,
        "studentId": student.id,
        "incidentType": "MISBEHAVIOR",
        "photoBase64": base64.b64encode(b"not an image").decode(),
    }
    response = client.post(
        "/operator/reports", json=report, headers=operatorHeader(client, "driver")
    )
    assert response.status_code == 406
    assert uploads == {}


def test_gps_upsert(client, session):
    trip = makeTrip(session)
    makeOperator(session, "driver")
    header = operatorHeader(client, "driver")

    for latitude in (26.93, 26.94):
        response = client.post(
            "/operator/gps",
            json={"tripId": trip.id, "latitude": latitude, "longitude": 75.92},
            headers=header,
        )
        assert response.status_code == 200, response.text
    assert response.json()["latitude"] == 26.94
    assert session.query(TripTrace).filter(TripTrace.trip_id == trip.id).count() == 1

    response = client.post(
        "/operator/gps",
        json={"tripId": trip.id, "latitude": 120, "longitude": 75.92},
        headers=header,
    )
    assert response.status_code == 422


def test_report_keeps_suspended_student_suspended(client, session):
    trip = makeTrip(session)
    student = makeStudent(session, status=AccountStatus.SUSPENDED)
    student.penalty_count = MAX_PENALTY_COUNT - 1
    session.commit()
    makeOperator(session, "driver")

    report = {"tripId": trip.id, "studentId": student.id, "incidentType": "OTHER"}
    response = client.post(
        "/operator/reports", json=report, headers=operatorHeader(client, "driver")
    )
    assert response.status_code == 201
    assert response.json()["penaltyCount"] == MAX_PENALTY_COUNT
    assert response.json()["isBlocked"] is False

    student = session.query(Student).filter(Student.id == student.id).populate_existing().one()
    assert student.status == AccountStatus.SUSPENDED
    response = client.post(
        "/student/auth/login",
        json={"email": "asha@lnmiit.ac.in", "password": "password123"},
    )
    assert response.status_code == 412


def test_report_on_unknown_student_stores_no_picture(client, session, uploads):
    trip = makeTrip(session)
    makeOperator(session, "driver")
    report = {
        "tripId": trip.id,
        "studentId": 9999,
        "incidentType": "MISBEHAVIOR",
        "photoBase64": pictureBase64(),
    }
    response = client.post(
        "/operator/reports", json=report, headers=operatorHeader(client, "driver")
    )
    assert response.status_code == 404
    assert uploads == {}


def test_failed_report_removes_picture(client, session, uploads, monkeypatch):
    trip = makeTrip(session)
    student = makeStudent(session)
    makeOperator(session, "driver")
    header = operatorHeader(client, "driver")

    def commit(self):
        raise RuntimeError("database went away")

    report = {
        "tripId": trip.id,
        "studentId": student.id,
        "incidentType": "MISBEHAVIOR",
        "photoBase64": pictureBase64(),
    }
    removed = []

    def deleteFile(bucketName, objectID):
        removed.append(objectID)
        del uploads[(bucketName, objectID)]

    with monkeypatch.context() as patch:
        patch.setattr(Session, "commit", commit)
        patch.setattr("campus_bus.api.incident_report.deleteFile", deleteFile)
        with pytest.raises(RuntimeError):
            client.post("/operator/reports", json=report, headers=header)

    assert len(removed) == 1
    assert uploads == {}
    assert session.query(IncidentReport).count() == 0
