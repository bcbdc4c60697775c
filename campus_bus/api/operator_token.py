from datetime import datetime, timedelta, timezone
from fastapi import APIRouter, Depends, status
from fastapi.encoders import jsonable_encoder
from pydantic import Field

from campus_bus.src.constants import (
    MAX_OPERATOR_TOKENS,
    MAX_TOKEN_VALIDITY,
    REGEX_EMPLOYEE_ID,
)
from campus_bus.src.db import Operator, OperatorToken, sessionMaker
from campus_bus.src import argon2, exceptions, validators, getters
from campus_bus.src.enums import AccountStatus, PlatformType
from campus_bus.src.loggers import logEvent
from campus_bus.src.functions import enumNames, makeExceptionResponses
from campus_bus.src.schemas import CamelModel
from campus_bus.src.urls import URL_OPERATOR_TOKEN

route_operator = APIRouter()


## Output Schema
class OperatorTokenSchema(CamelModel):
    token: str
    token_type: str = "bearer"
    expires_in: int
    operator_id: int
    name: str | None
    employee_id: str
    manage_trip: bool


## Input Forms
class CreateForm(CamelModel):
    employee_id: str = Field(max_length=32, pattern=REGEX_EMPLOYEE_ID)
    password: str = Field(max_length=32)
    platform_type: str = Field(
        default=PlatformType.OTHER.name, description=enumNames(PlatformType)
    )
    client_details: str | None = Field(default=None, max_length=1024)


## API endpoints [Operator]
@route_operator.post(
    URL_OPERATOR_TOKEN,
    tags=["Token"],
    response_model=OperatorTokenSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.InactiveAccount,
            exceptions.InvalidCredentials,
            exceptions.InvalidValue(OperatorToken.platform_type),
        ]
    ),
    description="""
    Issues a new access token for an operator after validating the employee ID and password.
    Limits active tokens using MAX_OPERATOR_TOKENS (token rotation).
    Sets expiration with expires_in=MAX_TOKEN_VALIDITY (in seconds).
    Token will be generated for ACTIVE operators only.
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
            PlatformType, fParam.platform_type, OperatorToken.platform_type
        )
        operator = (
            session.query(Operator)
            .filter(Operator.employee_id == fParam.employee_id)
            .first()
        )
        if operator is None:
            raise exceptions.InvalidCredentials()

        if not argon2.checkPassword(fParam.password, operator.password):
            raise exceptions.InvalidCredentials()
        if operator.status != AccountStatus.ACTIVE:
            raise exceptions.InactiveAccount()
        if argon2.needsRehash(operator.password):
            operator.password = argon2.makePassword(fParam.password)

        # Remove excess tokens from DB
        tokens = (
            session.query(OperatorToken)
            .filter(OperatorToken.operator_id == operator.id)
            .order_by(OperatorToken.created_on.desc(), OperatorToken.id.desc())
            .all()
        )
        for token in tokens[MAX_OPERATOR_TOKENS - 1 :]:
            session.delete(token)
        session.flush()

        # Create a new token
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=MAX_TOKEN_VALIDITY)
        token = OperatorToken(
            operator_id=operator.id,
            expires_in=MAX_TOKEN_VALIDITY,
            expires_at=expires_at,
            platform_type=platformType,
            client_details=fParam.client_details,
        )
        session.add(token)
        session.commit()
        logEvent(token, request_info, jsonable_encoder(token, exclude={"access_token"}))
        return OperatorTokenSchema(
            token=token.access_token,
            expires_in=token.expires_in,
            operator_id=operator.id,
            name=operator.full_name,
            employee_id=operator.employee_id,
            manage_trip=operator.manage_trip,
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
