"""
Booking state machine.

Every booking lives in one of the `BookingStatus` states:

    (request) -> CONFIRMED | WAITLIST
    WAITLIST  -> CONFIRMED (promotion) | CANCELLED
    CONFIRMED -> SCANNED | CANCELLED
    SCANNED, CANCELLED: terminal

Reservation, cancellation and promotion of a trip run under the trip's Redis
mutex and commit as a single transaction. The seat ledger's conditional update
keeps the capacity invariant even if the mutex expires under load.
"""

from datetime import datetime, timezone
from typing import List, Optional, Tuple
from sqlalchemy import update
from sqlalchemy.orm.session import Session

from campus_bus.src import exceptions, validators
from campus_bus.src.booking import ledger, qr, waitlist
from campus_bus.src.db import Booking, Student, Trip
from campus_bus.src.enums import AccountStatus, BookingStatus, TripStatus
from campus_bus.src.functions import departureOf
from campus_bus.src.redis import mutex

BOOKING_TRANSITIONS = {
    BookingStatus.CONFIRMED: [BookingStatus.SCANNED, BookingStatus.CANCELLED],
    BookingStatus.WAITLIST: [BookingStatus.CONFIRMED, BookingStatus.CANCELLED],
    BookingStatus.SCANNED: [],
    BookingStatus.CANCELLED: [],
}

TRIP_TRANSITIONS = {
    TripStatus.SCHEDULED: [TripStatus.ACTIVE, TripStatus.CANCELLED],
    TripStatus.ACTIVE: [TripStatus.COMPLETED],
    TripStatus.COMPLETED: [],
    TripStatus.CANCELLED: [],
}

LIVE_BOOKING_STATUS = [
    BookingStatus.CONFIRMED,
    BookingStatus.WAITLIST,
    BookingStatus.SCANNED,
]


def isClosed(trip: Trip) -> bool:
    """A trip takes no new bookings once it departed or left the bookable states."""
    if trip.status not in (TripStatus.SCHEDULED, TripStatus.ACTIVE):
        return True
    return departureOf(trip.trip_date, trip.departure_time) <= datetime.now(
        timezone.utc
    )


def _lockedTrip(session: Session, tripID: int) -> Trip | None:
    # Reload so the counters reflect writes committed by other workers
    return (
        session.query(Trip).filter(Trip.id == tripID).populate_existing().first()
    )


def createBooking(session: Session, student: Student, tripID: int) -> Booking:
    """
    Book a seat for a student, or put the student on the waitlist.

    Args:
        session (Session): Active SQLAlchemy session, committed on success.
        student (Student): The requesting student.
        tripID (int): The trip to book.

    Returns:
        Booking: CONFIRMED with a QR token, or WAITLIST without one.

    Raises:
        exceptions.UnknownValue: If the trip does not exist.
        exceptions.TripClosed: If the trip departed or is not bookable.
        exceptions.InactiveAccount: If the student is suspended.
        exceptions.StudentBlocked: If the student reached the penalty limit.
        exceptions.DuplicateBooking: If the student already holds a live booking.
        exceptions.LockAcquireTimeout: If the trip is busy, the request may be retried.
    """
    with mutex(Trip.__tablename__, tripID):
        try:
            trip = _lockedTrip(session, tripID)
            if trip is None:
                raise exceptions.UnknownValue(Booking.trip_id)
            if isClosed(trip):
                raise exceptions.TripClosed()
            if student.status == AccountStatus.SUSPENDED:
                raise exceptions.InactiveAccount()
            if student.status == AccountStatus.BLOCKED:
                raise exceptions.StudentBlocked()

            existing = (
                session.query(Booking.id)
                .filter(
                    Booking.trip_id == trip.id,
                    Booking.student_id == student.id,
                    Booking.status != BookingStatus.CANCELLED,
                )
                .first()
            )
            if existing is not None:
                raise exceptions.DuplicateBooking()

            booking = Booking(trip_id=trip.id, student_id=student.id)
            try:
                ledger.reserve(session, trip.id)
                booking.status = BookingStatus.CONFIRMED
                session.add(booking)
                session.flush()
                qr.issue(trip, booking)
            except exceptions.NoCapacity:
                booking.status = BookingStatus.WAITLIST
                session.add(booking)
                session.flush()
                waitlist.enqueue(session, trip.id, booking.id)
            session.commit()
        except Exception:
            session.rollback()
            raise
    return booking


def _promote(session: Session, trip: Trip) -> Booking | None:
    """Move the head of the trip's waitlist onto the freed seat."""
    while True:
        bookingID = waitlist.dequeueNext(session, trip.id)
        if bookingID is None:
            return None
        booking = (
            session.query(Booking)
            .filter(Booking.id == bookingID)
            .populate_existing()
            .first()
        )
        if booking is None or booking.status != BookingStatus.WAITLIST:
            continue
        ledger.reserve(session, trip.id)
        booking.status = BookingStatus.CONFIRMED
        qr.issue(trip, booking)
        session.flush()
        return booking


def cancelBooking(
    session: Session, bookingID: int, studentID: Optional[int] = None
) -> Tuple[Booking, Booking | None]:
    """
    Cancel a booking and promote the head of the waitlist into a freed seat.

    Nobody is promoted once the trip is closed, the waitlist stays as it is.

    Args:
        session (Session): Active SQLAlchemy session, committed on success.
        bookingID (int): The booking to cancel.
        studentID (Optional[int]): When given, the booking must belong to this student.

    Returns:
        Tuple[Booking, Booking | None]: The cancelled booking and the promoted one, if any.

    Raises:
        exceptions.InvalidIdentifier: If the booking does not exist or belongs to someone else.
        exceptions.InvalidStateTransition: If the booking is already SCANNED or CANCELLED.
        exceptions.LockAcquireTimeout: If the trip is busy, the request may be retried.
    """
    booking = session.query(Booking).filter(Booking.id == bookingID).first()
    if booking is None or (studentID is not None and booking.student_id != studentID):
        raise exceptions.InvalidIdentifier()

    with mutex(Trip.__tablename__, booking.trip_id):
        try:
            booking = (
                session.query(Booking)
                .filter(Booking.id == bookingID)
                .populate_existing()
                .first()
            )
            validators.stateTransition(
                BOOKING_TRANSITIONS,
                booking.status,
                BookingStatus.CANCELLED,
                Booking.status,
            )
            previousStatus = BookingStatus(booking.status)
            result = session.execute(
                update(Booking)
                .where(Booking.id == booking.id, Booking.status == previousStatus)
                .values(
                    status=BookingStatus.CANCELLED,
                    qr_token=None,
                    cancelled_on=datetime.now(timezone.utc),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise exceptions.InvalidStateTransition(Booking.status)

            promoted = None
            if previousStatus == BookingStatus.CONFIRMED:
                ledger.release(session, booking.trip_id)
                trip = _lockedTrip(session, booking.trip_id)
                if not isClosed(trip):
                    promoted = _promote(session, trip)
            else:
                waitlist.remove(session, booking.id)
            session.commit()
        except Exception:
            session.rollback()
            raise
        session.refresh(booking)
    return booking, promoted


def cancelTrip(session: Session, tripID: int) -> List[Booking]:
    """
    Cancel a scheduled trip together with every live booking on it.

    Seats are returned and the waitlist is cleared, nobody is promoted.

    Returns:
        List[Booking]: The bookings that were cancelled.

    Raises:
        exceptions.InvalidIdentifier: If the trip does not exist.
        exceptions.InvalidStateTransition: If the trip already departed or finished.
    """
    with mutex(Trip.__tablename__, tripID):
        try:
            trip = _lockedTrip(session, tripID)
            if trip is None:
                raise exceptions.InvalidIdentifier()
            validators.stateTransition(
                TRIP_TRANSITIONS, trip.status, TripStatus.CANCELLED, Trip.status
            )
            bookings = (
                session.query(Booking)
                .filter(
                    Booking.trip_id == trip.id,
                    Booking.status.in_(LIVE_BOOKING_STATUS),
                )
                .all()
            )
            cancelledOn = datetime.now(timezone.utc)
            for booking in bookings:
                booking.status = BookingStatus.CANCELLED
                booking.qr_token = None
                booking.cancelled_on = cancelledOn
            waitlist.clear(session, trip.id)
            ledger.releaseAll(session, trip.id)
            trip.status = TripStatus.CANCELLED
            trip.finished_on = cancelledOn
            session.commit()
        except Exception:
            session.rollback()
            raise
        session.refresh(trip)
    return bookings


def changeTripStatus(session: Session, tripID: int, status: TripStatus) -> Trip:
    """
    Move a trip along `TRIP_TRANSITIONS`. Cancellation is delegated to `cancelTrip`.

    Raises:
        exceptions.InvalidIdentifier: If the trip does not exist.
        exceptions.InvalidStateTransition: If the transition is not allowed.
    """
    if status == TripStatus.CANCELLED:
        cancelTrip(session, tripID)
        return session.query(Trip).filter(Trip.id == tripID).first()

    with mutex(Trip.__tablename__, tripID):
        try:
            trip = _lockedTrip(session, tripID)
            if trip is None:
                raise exceptions.InvalidIdentifier()
            validators.stateTransition(
                TRIP_TRANSITIONS, trip.status, status, Trip.status
            )
            trip.status = status
            if status == TripStatus.ACTIVE:
                trip.started_on = datetime.now(timezone.utc)
            elif status == TripStatus.COMPLETED:
                trip.finished_on = datetime.now(timezone.utc)
            session.commit()
        except Exception:
            session.rollback()
            raise
    return trip


def waitlistPosition(session: Session, booking: Booking) -> int | None:
    """The derived 1-based waitlist position of a booking, None unless WAITLIST."""
    if booking.status != BookingStatus.WAITLIST:
        return None
    return waitlist.positionOf(session, booking.id)
