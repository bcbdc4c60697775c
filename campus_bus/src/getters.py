from fastapi import Request
from sqlalchemy.orm.session import Session

from campus_bus.src import schemas
from campus_bus.src.db import Operator, OperatorToken, Student, StudentToken


def requestInfo(request: Request) -> schemas.RequestInfo:
    """
    Extract metadata about the incoming request.

    Args:
        request (Request): FastAPI request object.

    Returns:
        schemas.RequestInfo: Pydantic model containing:
            - method (str): HTTP method (GET, POST, etc.).
            - path (str): Path portion of the request URL.
            - app_id (int): Application ID from app state.
    """
    return schemas.RequestInfo(
        method=request.method,
        path=request.url.path,
        app_id=request.scope["app"].state.id,
    )


def student(token: StudentToken, session: Session) -> Student | None:
    """Fetch the student owning a token."""
    return session.query(Student).filter(Student.id == token.student_id).first()


def operator(token: OperatorToken, session: Session) -> Operator | None:
    """Fetch the operator owning a token."""
    return session.query(Operator).filter(Operator.id == token.operator_id).first()
