"""
Waitlist queue: FIFO order of the waitlisted bookings of each trip.

The queue is the `waitlist_entry` table read in primary key order. Entry ids
are handed out monotonically, so two requests with the same timestamp keep
their insertion order. Positions are never stored, they are derived from the
current order whenever they are asked for.
"""

from typing import Dict, List, Optional
from sqlalchemy import func
from sqlalchemy.orm.session import Session

from campus_bus.src.db import WaitlistEntry


def enqueue(session: Session, tripID: int, bookingID: int) -> int:
    """
    Append a booking to the end of the trip's waitlist.

    Returns:
        int: The 1-based position of the booking, the current queue length.
    """
    session.add(WaitlistEntry(trip_id=tripID, booking_id=bookingID))
    session.flush()
    return length(session, tripID)


def order(session: Session, tripID: int) -> List[int]:
    """Booking ids of a trip's waitlist, head first."""
    rows = (
        session.query(WaitlistEntry.booking_id)
        .filter(WaitlistEntry.trip_id == tripID)
        .order_by(WaitlistEntry.id.asc())
        .all()
    )
    return [row.booking_id for row in rows]


def dequeueNext(session: Session, tripID: int) -> Optional[int]:
    """
    Pop the earliest entry of the trip's waitlist.
    Only called when a seat was released.

    Returns:
        Optional[int]: The booking id of the popped entry, None if the queue is empty.
    """
    entry = (
        session.query(WaitlistEntry)
        .filter(WaitlistEntry.trip_id == tripID)
        .order_by(WaitlistEntry.id.asc())
        .first()
    )
    if entry is None:
        return None
    bookingID = entry.booking_id
    session.delete(entry)
    session.flush()
    return bookingID


def positionOf(session: Session, bookingID: int) -> Optional[int]:
    """
    The 1-based position of a booking in its trip's waitlist.

    Returns:
        Optional[int]: None if the booking is not queued.
    """
    entry = (
        session.query(WaitlistEntry.trip_id)
        .filter(WaitlistEntry.booking_id == bookingID)
        .first()
    )
    if entry is None:
        return None
    for position, queuedID in enumerate(order(session, entry.trip_id), start=1):
        if queuedID == bookingID:
            return position
    return None


def positions(session: Session, tripID: int) -> Dict[int, int]:
    """Position of every queued booking of a trip, keyed by booking id."""
    return {
        bookingID: position
        for position, bookingID in enumerate(order(session, tripID), start=1)
    }


def remove(session: Session, bookingID: int) -> bool:
    """
    Drop a booking from its waitlist, closing the gap behind it.

    Returns:
        bool: False if the booking was not queued.
    """
    removed = (
        session.query(WaitlistEntry)
        .filter(WaitlistEntry.booking_id == bookingID)
        .delete(synchronize_session=False)
    )
    return removed > 0


def clear(session: Session, tripID: int) -> int:
    """Empty a trip's waitlist. Returns the number of removed entries."""
    return (
        session.query(WaitlistEntry)
        .filter(WaitlistEntry.trip_id == tripID)
        .delete(synchronize_session=False)
    )


def length(session: Session, tripID: int) -> int:
    """Number of bookings waiting on a trip."""
    return (
        session.query(func.count(WaitlistEntry.id))
        .filter(WaitlistEntry.trip_id == tripID)
        .scalar()
    )


def lengths(session: Session, tripIDs: List[int]) -> Dict[int, int]:
    """Waitlist length of several trips in one query; trips without entries are omitted."""
    if not tripIDs:
        return {}
    rows = (
        session.query(WaitlistEntry.trip_id, func.count(WaitlistEntry.id))
        .filter(WaitlistEntry.trip_id.in_(tripIDs))
        .group_by(WaitlistEntry.trip_id)
        .all()
    )
    return {tripID: count for tripID, count in rows}
