from typing import Union
from campus_bus.src.db import OperatorToken, StudentToken
from campus_bus.src import openobserve
from campus_bus.src.schemas import RequestInfo
from campus_bus.src.enums import AppID


def logEvent(
    token: Union[StudentToken, OperatorToken],
    requestInfo: RequestInfo,
    data: dict,
) -> None:
    """
    Log an audit event to OpenObserve with request and user context.

    Args:
        token (Union[StudentToken, OperatorToken]): Authenticated user token.
        requestInfo (RequestInfo): Metadata about the current request.
        data (dict): Additional event-specific details to include in the log.

    Notes:
        - Automatically attaches `_app_id`, `_method`, `_path` and the user ID.
        - User-specific key depends on the app:
            - Student  → `_student_id`
            - Operator → `_operator_id`
        - Event keys never carry access tokens or QR tokens; callers exclude them.
    """
    logDetails = {
        "_method": requestInfo.method,
        "_path": requestInfo.path,
        "_app_id": requestInfo.app_id,
    }

    if requestInfo.app_id == AppID.STUDENT and isinstance(token, StudentToken):
        logDetails["_student_id"] = token.student_id
    elif requestInfo.app_id == AppID.OPERATOR and isinstance(token, OperatorToken):
        logDetails["_operator_id"] = token.operator_id

    logDetails.update(data)
    openobserve.logEvent(logDetails)
