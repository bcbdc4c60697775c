from datetime import date as Date, datetime
from typing import List
from fastapi import APIRouter, Depends, status
from fastapi.encoders import jsonable_encoder
from pydantic import Field

from campus_bus.api.bearer import bearer_operator, bearer_student
from campus_bus.src.db import Booking, Operator, Trip, sessionMaker
from campus_bus.src import exceptions, validators, getters
from campus_bus.src.booking import engine
from campus_bus.src.enums import BookingStatus, TripRoute, TripStatus
from campus_bus.src.loggers import logEvent
from campus_bus.src.functions import makeExceptionResponses
from campus_bus.src.schemas import CamelModel
from campus_bus.src.urls import (
    URL_BOOKING,
    URL_BOOKING_HISTORY,
    URL_BOOKING_ITEM,
    URL_OPERATOR_BOOKING_ITEM,
)

route_student = APIRouter()
route_operator = APIRouter()


## Output Schema
class BookingSchema(CamelModel):
    booking_id: int
    trip_id: int
    status: str
    position: int | None = None
    qr_token: str | None = None
    message: str


class CancelSchema(CamelModel):
    booking_id: int
    status: str
    promoted_booking_id: int | None = None
    message: str


class HistoryItemSchema(CamelModel):
    booking_id: int
    trip_id: int
    route: str
    destination: str
    trip_date: Date
    departure_time: str
    trip_status: str
    status: str
    position: int | None
    qr_token: str | None
    scanned_on: datetime | None
    cancelled_on: datetime | None
    created_on: datetime


class HistorySchema(CamelModel):
    bookings: List[HistoryItemSchema]


## Input Forms
class CreateForm(CamelModel):
    trip_id: int = Field(gt=0)


## Function
def logBooking(token, request_info, booking: Booking) -> None:
    logEvent(token, request_info, jsonable_encoder(booking, exclude={"qr_token"}))


## API endpoints [Student]
@route_student.post(
    URL_BOOKING,
    tags=["Booking"],
    response_model=BookingSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.UnknownValue(Booking.trip_id),
            exceptions.TripClosed,
            exceptions.InactiveAccount,
            exceptions.StudentBlocked,
            exceptions.DuplicateBooking,
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Books a seat on a trip for the logged in student.
    If a seat is free the booking is CONFIRMED and carries a signed, single use QR token.
    If the bus is full the booking joins the trip's waitlist (status WAITLIST) and its 1-based position is returned.
    A student holds at most one live booking per trip.
    Departed, completed and cancelled trips cannot be booked.
    Blocked and suspended students cannot book.
    On LockAcquireTimeout (503) the request can be retried after the Retry-After delay.
    Logs the booking event for audit tracking.
    """,
)
async def create_booking(
    fParam: CreateForm,
    bearer=Depends(bearer_student),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.studentToken(bearer.credentials, session)
        student = getters.student(token, session)

        booking = engine.createBooking(session, student, fParam.trip_id)
        session.refresh(booking)
        logBooking(token, request_info, booking)
        if booking.status == BookingStatus.CONFIRMED:
            return BookingSchema(
                booking_id=booking.id,
                trip_id=booking.trip_id,
                status=BookingStatus.CONFIRMED.name,
                qr_token=booking.qr_token,
                message="Seat confirmed",
            )
        position = engine.waitlistPosition(session, booking)
        return BookingSchema(
            booking_id=booking.id,
            trip_id=booking.trip_id,
            status=BookingStatus.WAITLIST.name,
            position=position,
            message=f"Bus is full, added to the waitlist at position {position}",
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_student.delete(
    URL_BOOKING_ITEM,
    tags=["Booking"],
    response_model=CancelSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.InvalidIdentifier,
            exceptions.InvalidStateTransition(Booking.status),
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Cancels a booking of the logged in student.
    Cancelling a CONFIRMED booking frees its seat, the earliest waitlisted booking of the trip is promoted
    to CONFIRMED in the same transaction and receives a fresh QR token.
    Cancelling a WAITLIST booking only removes it from the queue, the bookings behind it move up.
    SCANNED and CANCELLED bookings cannot be cancelled.
    Logs the cancellation (and the promotion, if any) for audit tracking.
    """,
)
async def cancel_booking(
    booking_id: int,
    bearer=Depends(bearer_student),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.studentToken(bearer.credentials, session)

        booking, promoted = engine.cancelBooking(
            session, booking_id, studentID=token.student_id
        )
        logBooking(token, request_info, booking)
        if promoted is not None:
            logBooking(token, request_info, promoted)
        return CancelSchema(
            booking_id=booking.id,
            status=BookingStatus.CANCELLED.name,
            promoted_booking_id=promoted.id if promoted is not None else None,
            message="Booking cancelled",
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_student.get(
    URL_BOOKING_HISTORY,
    tags=["Booking"],
    response_model=HistorySchema,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Lists every booking of the logged in student, newest first, cancelled ones included.
    Waitlisted bookings carry their current position, derived from the waitlist order.
    """,
)
async def fetch_booking_history(bearer=Depends(bearer_student)):
    try:
        session = sessionMaker()
        token = validators.studentToken(bearer.credentials, session)

        rows = (
            session.query(Booking, Trip)
            .join(Trip, Trip.id == Booking.trip_id)
            .filter(Booking.student_id == token.student_id)
            .order_by(Booking.id.desc())
            .all()
        )
        bookings = []
        for booking, trip in rows:
            bookings.append(
                HistoryItemSchema(
                    booking_id=booking.id,
                    trip_id=trip.id,
                    route=TripRoute(trip.route).name,
                    destination=trip.destination,
                    trip_date=trip.trip_date,
                    departure_time=trip.departure_time.strftime("%H:%M"),
                    trip_status=TripStatus(trip.status).name,
                    status=BookingStatus(booking.status).name,
                    position=engine.waitlistPosition(session, booking),
                    qr_token=booking.qr_token,
                    scanned_on=booking.scanned_on,
                    cancelled_on=booking.cancelled_on,
                    created_on=booking.created_on,
                )
            )
        return HistorySchema(bookings=bookings)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


## API endpoints [Operator]
@route_operator.delete(
    URL_OPERATOR_BOOKING_ITEM,
    tags=["Booking"],
    response_model=CancelSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.NoPermission,
            exceptions.InvalidIdentifier,
            exceptions.InvalidStateTransition(Booking.status),
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Cancels any student's booking, with the same seat release and waitlist promotion as a student cancellation.
    Only operators with `manage_trip` permission can cancel bookings.
    Logs the cancellation (and the promotion, if any) for audit tracking.
    """,
)
async def cancel_booking_for_student(
    booking_id: int,
    bearer=Depends(bearer_operator),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.operatorToken(bearer.credentials, session)
        operator = getters.operator(token, session)
        validators.operatorPermission(operator, Operator.manage_trip)

        booking, promoted = engine.cancelBooking(session, booking_id)
        logBooking(token, request_info, booking)
        if promoted is not None:
            logBooking(token, request_info, promoted)
        return CancelSchema(
            booking_id=booking.id,
            status=BookingStatus.CANCELLED.name,
            promoted_booking_id=promoted.id if promoted is not None else None,
            message="Booking cancelled",
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
