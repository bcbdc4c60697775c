from campus_bus.src.booking import waitlist
from campus_bus.src.db import Booking
from campus_bus.src.enums import BookingStatus

from conftest import makeStudent, makeTrip


def queueBookings(session, trip, names):
    bookings = []
    for name in names:
        student = makeStudent(session, name)
        booking = Booking(
            trip_id=trip.id, student_id=student.id, status=BookingStatus.WAITLIST
        )
        session.add(booking)
        session.flush()
        waitlist.enqueue(session, trip.id, booking.id)
        bookings.append(booking)
    session.commit()
    return bookings


def test_enqueue_returns_position(session):
    trip = makeTrip(session)
    student = makeStudent(session)
    booking = Booking(
        trip_id=trip.id, student_id=student.id, status=BookingStatus.WAITLIST
    )
    session.add(booking)
    session.flush()
    assert waitlist.enqueue(session, trip.id, booking.id) == 1
    assert waitlist.length(session, trip.id) == 1


def test_order_follows_insertion(session):
    trip = makeTrip(session)
    bookings = queueBookings(session, trip, ["Asha", "Bala", "Chitra", "Dev"])

    assert waitlist.order(session, trip.id) == [b.id for b in bookings]
    assert [waitlist.positionOf(session, b.id) for b in bookings] == [1, 2, 3, 4]


def test_interleaved_removal_keeps_fifo(session):
    trip = makeTrip(session)
    a, b, c, d = queueBookings(session, trip, ["Asha", "Bala", "Chitra", "Dev"])

    assert waitlist.remove(session, b.id) is True
    assert waitlist.positionOf(session, c.id) == 2
    e = queueBookings(session, trip, ["Esha"])[0]
    assert waitlist.dequeueNext(session, trip.id) == a.id
    assert waitlist.remove(session, d.id) is True

    assert waitlist.order(session, trip.id) == [c.id, e.id]
    assert waitlist.positions(session, trip.id) == {c.id: 1, e.id: 2}
    assert waitlist.positionOf(session, b.id) is None
    assert waitlist.remove(session, b.id) is False


def test_dequeue_empty_queue(session):
    trip = makeTrip(session)
    assert waitlist.dequeueNext(session, trip.id) is None


def test_queues_are_per_trip(session):
    first = makeTrip(session)
    second = makeTrip(session)
    queueBookings(session, first, ["Asha", "Bala"])
    queueBookings(session, second, ["Chitra"])

    assert waitlist.lengths(session, [first.id, second.id]) == {
        first.id: 2,
        second.id: 1,
    }
    assert waitlist.clear(session, first.id) == 2
    assert waitlist.length(session, first.id) == 0
    assert waitlist.length(session, second.id) == 1
