"""
Validation and permission checks for the Campus Bus API.

This module centralizes guard logic such as:
- Token validation
- Permission checks
- State transition enforcement
- Input checks that need more than a pydantic field constraint

All functions raise appropriate exceptions from `campus_bus.src.exceptions`
when validation fails, ensuring consistent error handling.
"""

from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Type
from sqlalchemy import Column
from sqlalchemy.orm import Session

from campus_bus.src.db import Operator, OperatorToken, StudentToken
from campus_bus.src.constants import ALLOWED_EMAIL_DOMAIN
from campus_bus.src.enums import AccountStatus
from campus_bus.src import exceptions
from campus_bus.src.functions import isValidTransition, toEnum


# ---------------------------------------------------------------------------
# Token validation
# ---------------------------------------------------------------------------
def _validate_token(model_cls, access_token: str, session: Session):
    """
    Generic token validator for any token model.

    Args:
        model_cls: The SQLAlchemy model class (e.g., StudentToken).
        access_token (str): The bearer token string provided by the client.
        session (Session): Active SQLAlchemy session for DB lookup.

    Returns:
        model_cls: The valid token object from the database.

    Raises:
        exceptions.InvalidToken: If the token is not found or has expired.
    """
    current_time = datetime.now(timezone.utc)

    token = (
        session.query(model_cls)
        .filter(
            model_cls.access_token == access_token,
            model_cls.expires_at > current_time,
        )
        .first()
    )

    if token is None:
        raise exceptions.InvalidToken()

    return token


def studentToken(access_token: str, session: Session) -> StudentToken:
    """Validate a student access token."""
    return _validate_token(StudentToken, access_token, session)


def operatorToken(access_token: str, session: Session) -> OperatorToken:
    """Validate an operator access token."""
    return _validate_token(OperatorToken, access_token, session)


# ---------------------------------------------------------------------------
# Permission checks
# ---------------------------------------------------------------------------
def operatorPermission(operator: Operator | None, permission: Column) -> bool:
    """
    Validate that an operator holds a permission flag.

    Args:
        operator (Operator | None): The operator account.
        permission (Column): Boolean column representing the permission flag.

    Raises:
        exceptions.NoPermission: If the operator does not have the permission.
    """
    if operator and getattr(operator, permission.name, False):
        return True
    raise exceptions.NoPermission()


def activeAccount(account) -> bool:
    """
    Validate that an account is usable for login.

    Blocked students may still log in to see their history; suspended accounts may not.

    Raises:
        exceptions.InactiveAccount: If the account is suspended.
    """
    if account.status == AccountStatus.SUSPENDED:
        raise exceptions.InactiveAccount()
    return True


# ---------------------------------------------------------------------------
# Other validations
# ---------------------------------------------------------------------------
def stateTransition(
    transitions: dict[Any, list[Any]], old_state: Any, new_state: Any, state: Column
) -> bool:
    """
    Validate whether a state transition is allowed.

    Args:
        transitions (dict[Any, list[Any]]): Mapping of valid transitions.
        old_state (Any): Current state value.
        new_state (Any): Desired new state value.
        state (Column): SQLAlchemy column representing the state
            (used to format error messages).

    Raises:
        exceptions.InvalidStateTransition: If the transition is not permitted.
    """
    if not isValidTransition(transitions, old_state, new_state):
        raise exceptions.InvalidStateTransition(state)
    return True


def campusEmail(email: str) -> str:
    """
    Validate that an email belongs to the campus domain.

    Returns:
        str: The email in lower case.

    Raises:
        exceptions.InvalidEmailDomain: If the domain does not match `ALLOWED_EMAIL_DOMAIN`.
    """
    email = email.strip().lower()
    if not email.endswith(ALLOWED_EMAIL_DOMAIN) or len(email) <= len(
        ALLOWED_EMAIL_DOMAIN
    ):
        raise exceptions.InvalidEmailDomain(ALLOWED_EMAIL_DOMAIN)
    return email


def enumValue(enumClass: Type[IntEnum], value: Any, column: Column) -> IntEnum:
    """
    Resolve an enum given by name or value.

    Raises:
        exceptions.InvalidValue: If the value matches no member.
    """
    member = toEnum(enumClass, value)
    if member is None:
        raise exceptions.InvalidValue(column)
    return member
