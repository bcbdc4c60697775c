from datetime import date, datetime, timedelta, timezone

import pytest

from campus_bus.src import cleaner, exceptions, validators
from campus_bus.src.booking.engine import BOOKING_TRANSITIONS
from campus_bus.src.db import StudentToken
from campus_bus.src.enums import BookingStatus, DayType, TripRoute
from campus_bus.src.functions import dayTypeOf, isValidTransition, toEnum

from conftest import makeStudent


@pytest.mark.parametrize(
    "value, expected",
    [
        ("CAMPUS_TO_CITY", TripRoute.CAMPUS_TO_CITY),
        (" city_to_campus ", TripRoute.CITY_TO_CAMPUS),
        ("2", TripRoute.CITY_TO_CAMPUS),
        (1, TripRoute.CAMPUS_TO_CITY),
        ("MOON", None),
        (9, None),
    ],
)
def test_to_enum(value, expected):
    assert toEnum(TripRoute, value) == expected


def test_day_type():
    assert dayTypeOf(date(2026, 10, 17)) == DayType.WEEKEND
    assert dayTypeOf(date(2026, 10, 19)) == DayType.WEEKDAY


def test_booking_transitions():
    assert isValidTransition(
        BOOKING_TRANSITIONS, BookingStatus.WAITLIST, BookingStatus.CONFIRMED
    )
    assert isValidTransition(
        BOOKING_TRANSITIONS, BookingStatus.CONFIRMED, BookingStatus.SCANNED
    )
    assert not isValidTransition(
        BOOKING_TRANSITIONS, BookingStatus.SCANNED, BookingStatus.CANCELLED
    )
    assert not isValidTransition(
        BOOKING_TRANSITIONS, BookingStatus.CANCELLED, BookingStatus.CONFIRMED
    )


def test_campus_email():
    assert validators.campusEmail(" Asha@LNMIIT.ac.in ") == "asha@lnmiit.ac.in"
    for email in ["asha@gmail.com", "@lnmiit.ac.in", "asha@lnmiit.ac.in.evil.com"]:
        with pytest.raises(exceptions.InvalidEmailDomain):
            validators.campusEmail(email)


def test_remove_expired_tokens(session):
    student = makeStudent(session)
    now = datetime.now(timezone.utc)
    for expiresAt in (now - timedelta(hours=1), now + timedelta(hours=1)):
        session.add(
            StudentToken(student_id=student.id, expires_in=3600, expires_at=expiresAt)
        )
    session.commit()

    assert cleaner.removeExpiredTokens(session, StudentToken) == 1
    assert session.query(StudentToken).count() == 1
