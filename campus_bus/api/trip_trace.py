from datetime import datetime
from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from pydantic import Field

from campus_bus.api.bearer import bearer_operator
from campus_bus.src.db import Trip, TripTrace, sessionMaker
from campus_bus.src import exceptions, validators, getters
from campus_bus.src.enums import TripStatus
from campus_bus.src.loggers import logEvent
from campus_bus.src.functions import makeExceptionResponses
from campus_bus.src.schemas import CamelModel
from campus_bus.src.urls import URL_TRIP_TRACE

route_operator = APIRouter()


## Output Schema
class TripTraceSchema(CamelModel):
    trip_id: int
    operator_id: int | None
    latitude: float
    longitude: float
    accuracy: float | None
    updated_on: datetime | None = None


## Input Forms
class UpdateForm(CamelModel):
    trip_id: int
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    accuracy: float | None = Field(default=None, ge=0)


## API endpoints [Operator]
@route_operator.post(
    URL_TRIP_TRACE,
    tags=["Trip Trace"],
    response_model=TripTraceSchema,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.UnknownValue(TripTrace.trip_id)]
    ),
    description="""
    Records the current position of a bus.
    Only the latest position is kept, one trace per trip.
    Positions of completed or cancelled trips are rejected.
    """,
)
async def update_trip_trace(
    fParam: UpdateForm,
    bearer=Depends(bearer_operator),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.operatorToken(bearer.credentials, session)

        trip = (
            session.query(Trip)
            .filter(Trip.id == fParam.trip_id)
            .filter(Trip.status.in_([TripStatus.SCHEDULED, TripStatus.ACTIVE]))
            .first()
        )
        if trip is None:
            raise exceptions.UnknownValue(TripTrace.trip_id)

        tripTrace = (
            session.query(TripTrace).filter(TripTrace.trip_id == trip.id).first()
        )
        if tripTrace is None:
            tripTrace = TripTrace(trip_id=trip.id)
            session.add(tripTrace)
        tripTrace.operator_id = token.operator_id
        tripTrace.latitude = fParam.latitude
        tripTrace.longitude = fParam.longitude
        tripTrace.accuracy = fParam.accuracy
        session.commit()
        session.refresh(tripTrace)
        logEvent(token, request_info, jsonable_encoder(tripTrace))
        return TripTraceSchema.model_validate(tripTrace)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
