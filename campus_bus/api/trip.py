from datetime import date as Date, datetime, time
from typing import List
from fastapi import APIRouter, Depends, Query, status
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from campus_bus.api.bearer import bearer_operator, bearer_student
from campus_bus.src.constants import REGEX_BUS_NUMBER
from campus_bus.src.db import Booking, Operator, Student, Trip, sessionMaker
from campus_bus.src import exceptions, validators, getters
from campus_bus.src.booking import engine, ledger, qr, waitlist
from campus_bus.src.enums import BookingStatus, TripRoute, TripStatus
from campus_bus.src.loggers import logEvent
from campus_bus.src.functions import dayTypeOf, enumNames, makeExceptionResponses
from campus_bus.src.schemas import CamelModel
from campus_bus.src.urls import (
    URL_OPERATOR_PASSENGER,
    URL_OPERATOR_TRIP,
    URL_OPERATOR_TRIP_START,
    URL_TRIP_AVAILABLE,
)

route_student = APIRouter()
route_operator = APIRouter()


## Output Schema
class TripSchema(CamelModel):
    trip_id: int
    route: str
    destination: str
    bus_number: str
    day_type: str
    trip_date: Date
    departure_time: str
    capacity: int
    faculty_reserved: int
    booked_count: int
    waitlist_count: int
    available_seats: int
    status: str
    started_on: datetime | None = None
    finished_on: datetime | None = None


class PassengerSchema(CamelModel):
    booking_id: int
    student_id: int
    student_name: str
    room: str | None
    phone: str | None
    status: str
    scanned_on: datetime | None


## Input Forms
class CreateForm(CamelModel):
    route: str = Field(description=enumNames(TripRoute))
    destination: str = Field(min_length=1, max_length=64)
    bus_number: str = Field(min_length=1, max_length=32, pattern=REGEX_BUS_NUMBER)
    trip_date: Date
    departure_time: time
    capacity: int = Field(gt=0, le=200)
    faculty_reserved: int = Field(default=0, ge=0)


class UpdateForm(CamelModel):
    id: int
    status: str = Field(description=enumNames(TripStatus))


class StartForm(CamelModel):
    trip_id: int


## Query Parameters
class QueryParamsForST(BaseModel):
    route: str | None = Field(Query(default=None, description=enumNames(TripRoute)))
    date: Date = Field(Query(description="Trip date in YYYY-MM-DD"))


class QueryParamsForOP(BaseModel):
    date: Date = Field(Query(description="Trip date in YYYY-MM-DD"))
    route: str | None = Field(Query(default=None, description=enumNames(TripRoute)))
    status: str | None = Field(Query(default=None, description=enumNames(TripStatus)))


## Function
def tripSchema(trip: Trip, waitlistCount: int = 0) -> TripSchema:
    return TripSchema(
        trip_id=trip.id,
        route=TripRoute(trip.route).name,
        destination=trip.destination,
        bus_number=trip.bus_number,
        day_type=dayTypeOf(trip.trip_date).name,
        trip_date=trip.trip_date,
        departure_time=trip.departure_time.strftime("%H:%M"),
        capacity=trip.capacity,
        faculty_reserved=trip.faculty_reserved,
        booked_count=trip.booked_count,
        waitlist_count=waitlistCount,
        available_seats=ledger.availableSeats(trip),
        status=TripStatus(trip.status).name,
        started_on=trip.started_on,
        finished_on=trip.finished_on,
    )


def searchTrip(
    session, tripDate: Date, route: TripRoute | None, statusList: List[TripStatus]
) -> List[TripSchema]:
    query = session.query(Trip).filter(Trip.trip_date == tripDate)
    if route is not None:
        query = query.filter(Trip.route == route)
    if statusList:
        query = query.filter(Trip.status.in_(statusList))
    trips = query.order_by(Trip.departure_time.asc(), Trip.id.asc()).all()

    waitlistCounts = waitlist.lengths(session, [trip.id for trip in trips])
    return [tripSchema(trip, waitlistCounts.get(trip.id, 0)) for trip in trips]


## API endpoints [Student]
@route_student.get(
    URL_TRIP_AVAILABLE,
    tags=["Trip"],
    response_model=List[TripSchema],
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.InvalidValue(Trip.route)]
    ),
    description="""
    Lists the bookable trips of a date, optionally restricted to one route.
    Only SCHEDULED and ACTIVE trips are listed, ordered by departure time.
    Every trip carries its bookedCount, waitlistCount and availableSeats,
    where availableSeats = capacity - facultyReserved - bookedCount.
    """,
)
async def fetch_available_trips(
    qParam: QueryParamsForST = Depends(), bearer=Depends(bearer_student)
):
    try:
        session = sessionMaker()
        validators.studentToken(bearer.credentials, session)

        route = None
        if qParam.route is not None:
            route = validators.enumValue(TripRoute, qParam.route, Trip.route)
        return searchTrip(
            session, qParam.date, route, [TripStatus.SCHEDULED, TripStatus.ACTIVE]
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


## API endpoints [Operator]
@route_operator.get(
    URL_OPERATOR_TRIP,
    tags=["Trip"],
    response_model=List[TripSchema],
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.InvalidValue(Trip.route),
            exceptions.InvalidValue(Trip.status),
        ]
    ),
    description="""
    Lists every trip of a date, including completed and cancelled ones.
    Can be narrowed down by route and status.
    Used by the operator app to pick the bus to serve.
    """,
)
async def fetch_trips(
    qParam: QueryParamsForOP = Depends(), bearer=Depends(bearer_operator)
):
    try:
        session = sessionMaker()
        validators.operatorToken(bearer.credentials, session)

        route = None
        if qParam.route is not None:
            route = validators.enumValue(TripRoute, qParam.route, Trip.route)
        statusList = []
        if qParam.status is not None:
            statusList = [validators.enumValue(TripStatus, qParam.status, Trip.status)]
        return searchTrip(session, qParam.date, route, statusList)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_operator.post(
    URL_OPERATOR_TRIP,
    tags=["Trip"],
    response_model=TripSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.NoPermission,
            exceptions.InvalidValue(Trip.route),
            exceptions.InvalidValue(Trip.faculty_reserved),
        ]
    ),
    description="""
    Creates a new SCHEDULED trip.
    The facultyReserved seats must not exceed the capacity.
    A fresh ECDSA key pair is generated for the trip, it signs the QR tokens of its bookings.
    Only operators with `manage_trip` permission can create trips.
    Logs the trip creation event for audit tracking.
    """,
)
async def create_trip(
    fParam: CreateForm,
    bearer=Depends(bearer_operator),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.operatorToken(bearer.credentials, session)
        operator = getters.operator(token, session)
        validators.operatorPermission(operator, Operator.manage_trip)

        route = validators.enumValue(TripRoute, fParam.route, Trip.route)
        if fParam.faculty_reserved > fParam.capacity:
            raise exceptions.InvalidValue(Trip.faculty_reserved)

        privateKey, publicKey = qr.newKeyPair()
        trip = Trip(
            route=route,
            destination=fParam.destination.strip(),
            bus_number=fParam.bus_number,
            trip_date=fParam.trip_date,
            departure_time=fParam.departure_time,
            capacity=fParam.capacity,
            faculty_reserved=fParam.faculty_reserved,
            booked_count=0,
            status=TripStatus.SCHEDULED,
            private_key=privateKey,
            public_key=publicKey,
        )
        session.add(trip)
        session.commit()
        logEvent(
            token,
            request_info,
            jsonable_encoder(trip, exclude={"private_key", "public_key"}),
        )
        return tripSchema(trip)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_operator.patch(
    URL_OPERATOR_TRIP,
    tags=["Trip"],
    response_model=TripSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.NoPermission,
            exceptions.InvalidIdentifier,
            exceptions.InvalidValue(Trip.status),
            exceptions.InvalidStateTransition(Trip.status),
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Moves a trip to a new status.
    Allowed transitions: SCHEDULED -> ACTIVE | CANCELLED, ACTIVE -> COMPLETED.
    Cancelling a trip cancels every live booking on it, returns all seats and empties the waitlist.
    Only operators with `manage_trip` permission can cancel a trip.
    Logs the status change for audit tracking.
    """,
)
async def update_trip(
    fParam: UpdateForm,
    bearer=Depends(bearer_operator),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.operatorToken(bearer.credentials, session)
        operator = getters.operator(token, session)

        newStatus = validators.enumValue(TripStatus, fParam.status, Trip.status)
        if newStatus == TripStatus.CANCELLED:
            validators.operatorPermission(operator, Operator.manage_trip)

        trip = engine.changeTripStatus(session, fParam.id, newStatus)
        logEvent(
            token,
            request_info,
            jsonable_encoder(trip, exclude={"private_key", "public_key"}),
        )
        return tripSchema(trip, waitlist.length(session, trip.id))
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_operator.post(
    URL_OPERATOR_TRIP_START,
    tags=["Trip"],
    response_model=TripSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.InvalidIdentifier,
            exceptions.InvalidStateTransition(Trip.status),
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Starts a SCHEDULED trip, boarding may begin.
    The trip moves to ACTIVE and its start time is recorded.
    Logs the event for audit tracking.
    """,
)
async def start_trip(
    fParam: StartForm,
    bearer=Depends(bearer_operator),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.operatorToken(bearer.credentials, session)

        trip = engine.changeTripStatus(session, fParam.trip_id, TripStatus.ACTIVE)
        logEvent(
            token,
            request_info,
            jsonable_encoder(trip, exclude={"private_key", "public_key"}),
        )
        return tripSchema(trip, waitlist.length(session, trip.id))
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_operator.get(
    URL_OPERATOR_PASSENGER,
    tags=["Trip"],
    response_model=List[PassengerSchema],
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.InvalidIdentifier]
    ),
    description="""
    Lists the passengers of a trip, the CONFIRMED and SCANNED bookings in booking order.
    Waitlisted and cancelled bookings are not listed.
    """,
)
async def fetch_passengers(trip_id: int, bearer=Depends(bearer_operator)):
    try:
        session = sessionMaker()
        validators.operatorToken(bearer.credentials, session)

        trip = session.query(Trip.id).filter(Trip.id == trip_id).first()
        if trip is None:
            raise exceptions.InvalidIdentifier()

        rows = (
            session.query(Booking, Student)
            .join(Student, Student.id == Booking.student_id)
            .filter(
                Booking.trip_id == trip_id,
                Booking.status.in_([BookingStatus.CONFIRMED, BookingStatus.SCANNED]),
            )
            .order_by(Booking.id.asc())
            .all()
        )
        return [
            PassengerSchema(
                booking_id=booking.id,
                student_id=student.id,
                student_name=student.name,
                room=student.room,
                phone=student.phone,
                status=BookingStatus(booking.status).name,
                scanned_on=booking.scanned_on,
            )
            for booking, student in rows
        ]
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
