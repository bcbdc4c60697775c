"""
Seat ledger: the authoritative seat count of every trip.

Seats are counted in `Trip.booked_count` and only ever changed through
conditional updates, so the database itself refuses to overbook even if two
writers race past the per-trip mutex.
"""

from sqlalchemy import update
from sqlalchemy.orm.session import Session

from campus_bus.src import exceptions
from campus_bus.src.db import Trip


def bookableSeats(trip: Trip) -> int:
    """Seats open to students, `capacity - faculty_reserved`."""
    return trip.capacity - trip.faculty_reserved


def availableSeats(trip: Trip) -> int:
    """Seats still free on the trip, never negative."""
    return max(bookableSeats(trip) - trip.booked_count, 0)


def reserve(session: Session, tripID: int) -> None:
    """
    Take one seat on a trip.

    The increment only applies while `booked_count < capacity - faculty_reserved`,
    evaluated by the database in the same statement.

    Raises:
        exceptions.NoCapacity: If the trip has no free seat left.
    """
    result = session.execute(
        update(Trip)
        .where(
            Trip.id == tripID,
            Trip.booked_count < Trip.capacity - Trip.faculty_reserved,
        )
        .values(booked_count=Trip.booked_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise exceptions.NoCapacity()


def release(session: Session, tripID: int) -> bool:
    """
    Give one seat back to a trip.

    `booked_count` never drops below zero, so the free seats never exceed
    `capacity - faculty_reserved`.

    Returns:
        bool: False if there was no booked seat to release.
    """
    result = session.execute(
        update(Trip)
        .where(Trip.id == tripID, Trip.booked_count > 0)
        .values(booked_count=Trip.booked_count - 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def releaseAll(session: Session, tripID: int) -> None:
    """Return every seat of a trip, used when the trip itself is cancelled."""
    session.execute(
        update(Trip)
        .where(Trip.id == tripID)
        .values(booked_count=0)
        .execution_options(synchronize_session=False)
    )
