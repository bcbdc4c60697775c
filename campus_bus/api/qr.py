from fastapi import APIRouter, Depends
from pydantic import Field

from campus_bus.api.bearer import bearer_operator
from campus_bus.src.db import Student, sessionMaker
from campus_bus.src import exceptions, validators, getters
from campus_bus.src.booking import qr
from campus_bus.src.enums import BookingStatus, QRStatus
from campus_bus.src.loggers import logEvent
from campus_bus.src.functions import enumNames, makeExceptionResponses
from campus_bus.src.schemas import CamelModel
from campus_bus.src.urls import URL_QR_VALIDATE

route_operator = APIRouter()


## Output Schema
class ValidationSchema(CamelModel):
    status: str = Field(description=enumNames(QRStatus))
    booking_id: int | None = None
    booking_status: str | None = None
    student_id: int | None = None
    student_name: str | None = None
    message: str


## Input Forms
class ValidateForm(CamelModel):
    qr_token: str = Field(max_length=512)
    trip_id: int


MESSAGES = {
    QRStatus.VALID: "Boarding allowed",
    QRStatus.DUPLICATE: "This ticket was already scanned",
    QRStatus.INVALID: "Invalid ticket for this trip",
}


## API endpoints [Operator]
@route_operator.post(
    URL_QR_VALIDATE,
    tags=["QR"],
    response_model=ValidationSchema,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.LockAcquireTimeout]
    ),
    description="""
    Validates a scanned QR token at the door of a trip.
    VALID: the token belongs to a CONFIRMED booking of this trip, the booking becomes SCANNED.
    DUPLICATE: the booking was already scanned, boarding should be refused.
    INVALID: the token is malformed, forged, issued for another trip, or its booking is cancelled or waitlisted.
    A token is accepted only once, even if it is scanned on two devices at the same time.
    Logs every validation for audit tracking.
    """,
)
async def validate_qr(
    fParam: ValidateForm,
    bearer=Depends(bearer_operator),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.operatorToken(bearer.credentials, session)

        qrStatus, booking = qr.validate(session, fParam.qr_token, fParam.trip_id)
        response = ValidationSchema(
            status=qrStatus.name, message=MESSAGES[qrStatus]
        )
        if booking is not None:
            student = (
                session.query(Student).filter(Student.id == booking.student_id).first()
            )
            response.booking_id = booking.id
            response.booking_status = BookingStatus(booking.status).name
            response.student_id = booking.student_id
            response.student_name = student.name if student else None

        logEvent(
            token,
            request_info,
            {
                "trip_id": fParam.trip_id,
                "booking_id": response.booking_id,
                "status": qrStatus.name,
            },
        )
        return response
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
