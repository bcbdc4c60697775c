from base64 import b64decode
from binascii import Error as Base64Error
from secrets import token_hex
from fastapi import APIRouter, Depends, status
from fastapi.encoders import jsonable_encoder
from pydantic import Field

from campus_bus.api.bearer import bearer_operator
from campus_bus.src.constants import (
    INCIDENT_PICTURES,
    INCIDENT_PICTURE_RESOLUTION,
    MAX_INCIDENT_PICTURE_SIZE,
    MAX_PENALTY_COUNT,
)
from campus_bus.src.db import IncidentReport, Student, Trip, sessionMaker
from campus_bus.src import exceptions, validators, getters
from campus_bus.src.enums import AccountStatus, IncidentType
from campus_bus.src.loggers import logEvent
from campus_bus.src.minio import deleteFile, uploadBytes
from campus_bus.src.redis import mutex
from campus_bus.src.functions import (
    enumNames,
    isImage,
    makeExceptionResponses,
    resizeImage,
)
from campus_bus.src.schemas import CamelModel
from campus_bus.src.urls import URL_INCIDENT_REPORT

route_operator = APIRouter()


## Output Schema
class IncidentReportSchema(CamelModel):
    id: int
    trip_id: int
    student_id: int
    operator_id: int
    incident_type: str
    description: str | None
    picture: str | None
    penalty_count: int
    is_blocked: bool


## Input Forms
class CreateForm(CamelModel):
    trip_id: int
    student_id: int
    incident_type: str = Field(
        default=IncidentType.OTHER.name, description=enumNames(IncidentType)
    )
    description: str | None = Field(default=None, max_length=1024)
    photo_base64: str | None = Field(default=None)


## Function
def decodePicture(photoBase64: str) -> bytes:
    """
    Decode a base64 photo (optionally a `data:` URL) and normalize it to a JPEG
    whose longest side is at most `INCIDENT_PICTURE_RESOLUTION`.

    Raises:
        exceptions.InvalidImageFile: If the data is not base64, too large, or not an image.
    """
    if photoBase64.startswith("data:"):
        photoBase64 = photoBase64.split(",", 1)[-1]
    try:
        imageBytes = b64decode(photoBase64, validate=True)
    except (Base64Error, ValueError):
        raise exceptions.InvalidImageFile()
    if not imageBytes or len(imageBytes) > MAX_INCIDENT_PICTURE_SIZE:
        raise exceptions.InvalidImageFile()
    if not isImage(imageBytes):
        raise exceptions.InvalidImageFile()
    return resizeImage(
        imageBytes,
        "JPEG",
        height=INCIDENT_PICTURE_RESOLUTION,
        width=INCIDENT_PICTURE_RESOLUTION,
    )


## API endpoints [Operator]
@route_operator.post(
    URL_INCIDENT_REPORT,
    tags=["Incident Report"],
    response_model=IncidentReportSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.UnknownValue(IncidentReport.trip_id),
            exceptions.UnknownValue(IncidentReport.student_id),
            exceptions.InvalidValue(IncidentReport.incident_type),
            exceptions.InvalidImageFile,
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Reports an incident against a student on a trip.
    An optional photo (base64, up to 5 MB) is resized to fit 1280x1280 and stored as JPEG in the incident picture bucket.
    Every report increases the student's penalty count by one.
    An active student reaching MAX_PENALTY_COUNT is BLOCKED and cannot book new trips.
    A suspended student stays suspended.
    The photo is stored only once the student is known, and removed again if the report cannot be saved.
    Logs the report for audit tracking.
    """,
)
async def create_incident_report(
    fParam: CreateForm,
    bearer=Depends(bearer_operator),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.operatorToken(bearer.credentials, session)

        incidentType = validators.enumValue(
            IncidentType, fParam.incident_type, IncidentReport.incident_type
        )
        trip = session.query(Trip.id).filter(Trip.id == fParam.trip_id).first()
        if trip is None:
            raise exceptions.UnknownValue(IncidentReport.trip_id)

        imageBytes = None
        if fParam.photo_base64:
            imageBytes = decodePicture(fParam.photo_base64)

        with mutex(Student.__tablename__, fParam.student_id):
            student = (
                session.query(Student)
                .filter(Student.id == fParam.student_id)
                .populate_existing()
                .first()
            )
            if student is None:
                raise exceptions.UnknownValue(IncidentReport.student_id)

            picture = None
            if imageBytes is not None:
                picture = f"{fParam.trip_id}-{token_hex(16)}.jpg"
            report = IncidentReport(
                trip_id=fParam.trip_id,
                operator_id=token.operator_id,
                student_id=student.id,
                incident_type=incidentType,
                description=fParam.description,
                picture=picture,
            )
            session.add(report)
            student.penalty_count += 1
            if (
                student.penalty_count >= MAX_PENALTY_COUNT
                and student.status == AccountStatus.ACTIVE
            ):
                student.status = AccountStatus.BLOCKED
            session.flush()

            if picture is not None:
                uploadBytes(INCIDENT_PICTURES, picture, imageBytes, "image/jpeg")
            try:
                session.commit()
            except Exception:
                if picture is not None:
                    deleteFile(INCIDENT_PICTURES, picture)
                raise

        logEvent(token, request_info, jsonable_encoder(report))
        return IncidentReportSchema(
            id=report.id,
            trip_id=report.trip_id,
            student_id=report.student_id,
            operator_id=report.operator_id,
            incident_type=incidentType.name,
            description=report.description,
            picture=report.picture,
            penalty_count=student.penalty_count,
            is_blocked=student.status == AccountStatus.BLOCKED,
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
