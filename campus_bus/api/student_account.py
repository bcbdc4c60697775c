from fastapi import APIRouter, Depends, status
from fastapi.encoders import jsonable_encoder
from pydantic import EmailStr, Field
from pydantic_extra_types.phone_numbers import PhoneNumber

from campus_bus.api.bearer import bearer_student
from campus_bus.api.student_token import AuthSchema, authResponse, issueToken
from campus_bus.src.constants import ALLOWED_EMAIL_DOMAIN, REGEX_PASSWORD
from campus_bus.src.db import Student, sessionMaker
from campus_bus.src import argon2, exceptions, validators, getters
from campus_bus.src.enums import AccountStatus
from campus_bus.src.loggers import logEvent
from campus_bus.src.functions import makeExceptionResponses
from campus_bus.src.schemas import CamelModel
from campus_bus.src.urls import URL_STUDENT_ACCOUNT, URL_STUDENT_PROFILE

route_student = APIRouter()


## Output Schema
class ProfileSchema(CamelModel):
    student_id: int
    email: str
    name: str
    room: str | None
    phone: str | None
    penalty_count: int
    is_blocked: bool
    profile_complete: bool


class CampusPhoneNumber(PhoneNumber):
    default_region_code = "IN"


## Input Forms
class CreateForm(CamelModel):
    email: EmailStr = Field(max_length=256)
    name: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=8, max_length=32, pattern=REGEX_PASSWORD)
    room: str | None = Field(default=None, max_length=32)
    phone: CampusPhoneNumber | None = Field(
        default=None, max_length=32, description="Phone number in RFC3966 format"
    )


## API endpoints [Student]
@route_student.post(
    URL_STUDENT_ACCOUNT,
    tags=["Account"],
    response_model=AuthSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidEmailDomain(ALLOWED_EMAIL_DOMAIN),
            exceptions.UniqueViolation("email"),
        ]
    ),
    description="""
    Registers a new student account and logs the student in.
    The email must belong to the campus domain (ALLOWED_EMAIL_DOMAIN) and is stored in lower case.
    The password is hashed with Argon2 before it is stored.
    Returns a fresh access token, like the login endpoint.
    Logs the registration event for audit tracking.
    """,
)
async def create_student(
    fParam: CreateForm,
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        email = validators.campusEmail(fParam.email)

        student = Student(
            email=email,
            name=fParam.name.strip(),
            password=argon2.makePassword(fParam.password),
            room=fParam.room,
            phone=fParam.phone,
        )
        session.add(student)
        session.flush()
        token = issueToken(session, student)
        session.commit()
        logEvent(
            token, request_info, jsonable_encoder(student, exclude={"password"})
        )
        return authResponse(token, student, "Registration successful")
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_student.get(
    URL_STUDENT_PROFILE,
    tags=["Account"],
    response_model=ProfileSchema,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Fetches the profile of the logged in student.
    isBlocked is set once the student reached MAX_PENALTY_COUNT incidents.
    profileComplete is set once both room and phone are known.
    """,
)
async def fetch_profile(bearer=Depends(bearer_student)):
    try:
        session = sessionMaker()
        token = validators.studentToken(bearer.credentials, session)
        student = getters.student(token, session)

        return ProfileSchema(
            student_id=student.id,
            email=student.email,
            name=student.name,
            room=student.room,
            phone=student.phone,
            penalty_count=student.penalty_count,
            is_blocked=student.status == AccountStatus.BLOCKED,
            profile_complete=bool(student.room and student.phone),
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
