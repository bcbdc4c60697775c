from campus_bus.src.enums import AccountStatus, TripRoute

from conftest import makeStudent, makeTrip, studentHeader, tripDate


def register(client, email="asha@lnmiit.ac.in", **overrides):
    data = {
        "email": email,
        "name": "Asha",
        "password": "password123",
        "room": "BH1-101",
        "phone": "+919496801157",
    }
    data.update(overrides)
    return client.post("/student/auth/register", json=data)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "OK"


def test_register_and_profile(client, audit):
    response = register(client, email="Asha@LNMIIT.ac.in")
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["email"] == "asha@lnmiit.ac.in"
    assert len(body["token"]) == 64
    assert "studentId" in body

    header = {"Authorization": f"Bearer {body['token']}"}
    profile = client.get("/student/profile", headers=header).json()
    assert profile["studentId"] == body["studentId"]
    assert profile["penaltyCount"] == 0
    assert profile["isBlocked"] is False
    assert profile["profileComplete"] is True
    assert audit and all("password" not in event for event in audit)


def test_register_rejects_other_domains(client):
    response = register(client, email="asha@gmail.com")
    assert response.status_code == 406
    assert response.headers["X-Error"] == "InvalidEmailDomain"


def test_register_twice(client):
    assert register(client).status_code == 201
    response = register(client)
    assert response.status_code == 409
    assert response.headers["X-Error"] == "UniqueViolation"


def test_login(client, session):
    makeStudent(session)
    response = client.post(
        "/student/auth/login",
        json={"email": "asha@lnmiit.ac.in", "password": "password123"},
    )
    assert response.status_code == 201
    assert response.json()["name"] == "Asha"

    response = client.post(
        "/student/auth/login",
        json={"email": "asha@lnmiit.ac.in", "password": "wrong-password"},
    )
    assert response.status_code == 401
    assert response.headers["X-Error"] == "InvalidCredentials"


def test_suspended_student_cannot_login(client, session):
    makeStudent(session, status=AccountStatus.SUSPENDED)
    response = client.post(
        "/student/auth/login",
        json={"email": "asha@lnmiit.ac.in", "password": "password123"},
    )
    assert response.status_code == 412


def test_logout(client, session):
    makeStudent(session)
    header = studentHeader(client, "asha@lnmiit.ac.in")
    assert client.delete("/student/auth/token", headers=header).status_code == 204
    assert client.get("/student/profile", headers=header).status_code == 401


def test_available_trips(client, session):
    makeStudent(session)
    header = studentHeader(client, "asha@lnmiit.ac.in")
    trip = makeTrip(session, capacity=40, faculty_reserved=4)
    makeTrip(session, route=TripRoute.CITY_TO_CAMPUS)

    response = client.get(
        "/student/trips/available",
        params={"route": "CAMPUS_TO_CITY", "date": tripDate().isoformat()},
        headers=header,
    )
    assert response.status_code == 200
    trips = response.json()
    assert len(trips) == 1
    assert trips[0]["tripId"] == trip.id
    assert trips[0]["route"] == "CAMPUS_TO_CITY"
    assert trips[0]["departureTime"] == "17:30"
    assert trips[0]["availableSeats"] == 36
    assert trips[0]["bookedCount"] == 0
    assert trips[0]["waitlistCount"] == 0
    assert trips[0]["dayType"] in ("WEEKDAY", "WEEKEND")


def test_available_trips_unknown_route(client, session):
    makeStudent(session)
    header = studentHeader(client, "asha@lnmiit.ac.in")
    response = client.get(
        "/student/trips/available",
        params={"route": "MOON", "date": tripDate().isoformat()},
        headers=header,
    )
    assert response.status_code == 406


def test_booking_flow(client, session):
    trip = makeTrip(session, capacity=1)
    makeStudent(session, "Asha")
    makeStudent(session, "Bala")
    asha = studentHeader(client, "asha@lnmiit.ac.in")
    bala = studentHeader(client, "bala@lnmiit.ac.in")

    first = client.post("/student/bookings", json={"tripId": trip.id}, headers=asha)
    assert first.status_code == 201, first.text
    assert first.json()["status"] == "CONFIRMED"
    assert first.json()["qrToken"]

    second = client.post("/student/bookings", json={"tripId": trip.id}, headers=bala)
    assert second.json()["status"] == "WAITLIST"
    assert second.json()["position"] == 1
    assert second.json().get("qrToken") is None

    again = client.post("/student/bookings", json={"tripId": trip.id}, headers=asha)
    assert again.status_code == 409
    assert again.headers["X-Error"] == "DuplicateBooking"

    listed = client.get(
        "/student/trips/available",
        params={"date": tripDate().isoformat()},
        headers=asha,
    ).json()[0]
    assert listed["bookedCount"] == 1
    assert listed["waitlistCount"] == 1
    assert listed["availableSeats"] == 0

    cancel = client.delete(
        f"/student/bookings/{first.json()['bookingId']}", headers=asha
    )
    assert cancel.status_code == 200
    assert cancel.json()["promotedBookingId"] == second.json()["bookingId"]

    history = client.get("/student/bookings/history", headers=bala).json()
    assert history["bookings"][0]["status"] == "CONFIRMED"
    assert history["bookings"][0]["qrToken"]
    assert history["bookings"][0]["position"] is None

    history = client.get("/student/bookings/history", headers=asha).json()
    assert history["bookings"][0]["status"] == "CANCELLED"
    assert history["bookings"][0]["qrToken"] is None


def test_cannot_cancel_someone_elses_booking(client, session):
    trip = makeTrip(session)
    makeStudent(session, "Asha")
    makeStudent(session, "Bala")
    asha = studentHeader(client, "asha@lnmiit.ac.in")
    bala = studentHeader(client, "bala@lnmiit.ac.in")

    booking = client.post("/student/bookings", json={"tripId": trip.id}, headers=asha)
    response = client.delete(
        f"/student/bookings/{booking.json()['bookingId']}", headers=bala
    )
    assert response.status_code == 404


def test_cancel_twice(client, session):
    trip = makeTrip(session)
    makeStudent(session)
    header = studentHeader(client, "asha@lnmiit.ac.in")
    booking = client.post("/student/bookings", json={"tripId": trip.id}, headers=header)
    url = f"/student/bookings/{booking.json()['bookingId']}"

    assert client.delete(url, headers=header).status_code == 200
    response = client.delete(url, headers=header)
    assert response.status_code == 406
    assert response.headers["X-Error"] == "InvalidStateTransition"


def test_book_unknown_trip(client, session):
    makeStudent(session)
    header = studentHeader(client, "asha@lnmiit.ac.in")
    response = client.post("/student/bookings", json={"tripId": 404}, headers=header)
    assert response.status_code == 404


def test_blocked_student_can_login_but_not_book(client, session):
    trip = makeTrip(session)
    makeStudent(session, status=AccountStatus.BLOCKED)
    header = studentHeader(client, "asha@lnmiit.ac.in")

    response = client.post("/student/bookings", json={"tripId": trip.id}, headers=header)
    assert response.status_code == 403
    assert response.headers["X-Error"] == "StudentBlocked"


def test_lock_contention_is_retryable(client, session, redis):
    trip = makeTrip(session)
    makeStudent(session)
    header = studentHeader(client, "asha@lnmiit.ac.in")
    redis.set(f"lock:trip:{trip.id}", "held-by-another-worker", ex=30)

    response = client.post("/student/bookings", json={"tripId": trip.id}, headers=header)
    assert response.status_code == 503
    assert response.headers["Retry-After"] == "1"


def test_booking_audit_event_has_creation_time(client, session, audit):
    trip = makeTrip(session)
    makeStudent(session)
    header = studentHeader(client, "asha@lnmiit.ac.in")
    audit.clear()

    response = client.post("/student/bookings", json={"tripId": trip.id}, headers=header)
    assert response.status_code == 201

    event = audit[-1]
    assert event["id"] == response.json()["bookingId"]
    assert event["created_on"] is not None
    assert "qr_token" not in event
