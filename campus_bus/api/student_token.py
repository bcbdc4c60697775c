from datetime import datetime, timedelta, timezone
from fastapi import APIRouter, Depends, Response, status
from fastapi.encoders import jsonable_encoder
from pydantic import Field
from sqlalchemy.orm.session import Session

from campus_bus.api.bearer import bearer_student
from campus_bus.src.constants import MAX_STUDENT_TOKENS, MAX_TOKEN_VALIDITY
from campus_bus.src.db import Student, StudentToken, sessionMaker
from campus_bus.src import argon2, exceptions, validators, getters
from campus_bus.src.enums import AccountStatus, PlatformType
from campus_bus.src.loggers import logEvent
from campus_bus.src.functions import enumNames, makeExceptionResponses
from campus_bus.src.schemas import CamelModel
from campus_bus.src.urls import URL_STUDENT_LOGOUT, URL_STUDENT_TOKEN

route_student = APIRouter()


## Output Schema
class AuthSchema(CamelModel):
    token: str
    token_type: str = "bearer"
    expires_in: int
    student_id: int
    email: str
    name: str
    message: str


## Input Forms
class CreateForm(CamelModel):
    email: str = Field(max_length=256)
    password: str = Field(max_length=32)
    platform_type: str = Field(
        default=PlatformType.OTHER.name, description=enumNames(PlatformType)
    )
    client_details: str | None = Field(default=None, max_length=1024)


## Function
def issueToken(
    session: Session,
    student: Student,
    platformType: PlatformType = PlatformType.OTHER,
    clientDetails: str | None = None,
) -> StudentToken:
    """
    Create a new access token for a student, evicting the oldest tokens
    beyond `MAX_STUDENT_TOKENS`. The caller commits.
    """
    tokens = (
        session.query(StudentToken)
        .filter(StudentToken.student_id == student.id)
        .order_by(StudentToken.created_on.desc(), StudentToken.id.desc())
        .all()
    )
    for token in tokens[MAX_STUDENT_TOKENS - 1 :]:
        session.delete(token)
    session.flush()

    expires_at = datetime.now(timezone.utc) + timedelta(seconds=MAX_TOKEN_VALIDITY)
    token = StudentToken(
        student_id=student.id,
        expires_in=MAX_TOKEN_VALIDITY,
        expires_at=expires_at,
        platform_type=platformType,
        client_details=clientDetails,
    )
    session.add(token)
    session.flush()
    return token


def authResponse(token: StudentToken, student: Student, message: str) -> AuthSchema:
    return AuthSchema(
        token=token.access_token,
        expires_in=token.expires_in,
        student_id=student.id,
        email=student.email,
        name=student.name,
        message=message,
    )


## API endpoints [Student]
@route_student.post(
    URL_STUDENT_TOKEN,
    tags=["Token"],
    response_model=AuthSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.InactiveAccount,
            exceptions.InvalidCredentials,
            exceptions.InvalidValue(StudentToken.platform_type),
        ]
    ),
    description="""
    Issues a new access token for a student after validating the campus email and password.
    Limits active tokens using MAX_STUDENT_TOKENS, the oldest token is revoked first.
    Sets expiration with expires_in=MAX_TOKEN_VALIDITY (in seconds).
    Blocked students may still log in to read their booking history.
    Logs the authentication event for audit tracking.
    """,
)
async def create_token(
    fParam: CreateForm,
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        platformType = validators.enumValue(
            PlatformType, fParam.platform_type, StudentToken.platform_type
        )
        student = (
            session.query(Student)
            .filter(Student.email == fParam.email.strip().lower())
            .first()
        )
        if student is None:
            raise exceptions.InvalidCredentials()
        if not argon2.checkPassword(fParam.password, student.password):
            raise exceptions.InvalidCredentials()
        validators.activeAccount(student)
        if argon2.needsRehash(student.password):
            student.password = argon2.makePassword(fParam.password)

        token = issueToken(session, student, platformType, fParam.client_details)
        session.commit()
        logEvent(token, request_info, jsonable_encoder(token, exclude={"access_token"}))
        message = "Login successful"
        if student.status == AccountStatus.BLOCKED:
            message = "Login successful, the account is blocked from booking"
        return authResponse(token, student, message)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_student.delete(
    URL_STUDENT_LOGOUT,
    tags=["Token"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Revokes the access token used in the request (logout).
    Logs the token revocation event for audit tracking.
    """,
)
async def delete_token(
    bearer=Depends(bearer_student),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.studentToken(bearer.credentials, session)

        session.delete(token)
        session.commit()
        logEvent(token, request_info, jsonable_encoder(token, exclude={"access_token"}))
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
