from datetime import date, datetime, time
from enum import IntEnum
from io import BytesIO
from typing import List, Type, Dict, Any
from PIL import Image, UnidentifiedImageError

from campus_bus.src import schemas
from campus_bus.src.constants import TMZ_SECONDARY
from campus_bus.src.enums import DayType
from campus_bus.src.exceptions import APIException


def makeExceptionResponses(exceptions: List[APIException | type]) -> Dict[int, dict]:
    """
    Generate OpenAPI response documentation by fusing multiple APIException instances.

    Args:
        exceptions (List[APIException | type]): Exception instances, or exception
            classes whose constructor takes no argument.

    Returns:
        Dict[int, dict]: A dictionary of OpenAPI response specs grouped by status code.
    """
    responses = {}

    for exception in exceptions:
        if isinstance(exception, type):
            exception = exception()
        status_code = exception.status_code
        example_key = type(exception).__name__
        example_value = {
            "summary": str(exception.headers),
            "value": {"detail": exception.detail},
        }

        if status_code not in responses:
            responses[status_code] = {
                "model": schemas.ErrorResponse,
                "content": {
                    "application/json": {"examples": {example_key: example_value}}
                },
            }
        else:
            responses[status_code]["content"]["application/json"]["examples"][
                example_key
            ] = example_value

    return responses


def enumNames(enumClass) -> str:
    """Pipe separated member names, used in field descriptions of name based enums."""
    return " | ".join(x.name for x in enumClass)


def toEnum(enumClass: Type[IntEnum], value: Any) -> IntEnum | None:
    """
    Resolve an enum member from its name or its integer value.

    Mobile clients send enum names (`"CAMPUS_TO_CITY"`), scripts may send values.

    Returns:
        IntEnum | None: The member, or None if nothing matches.
    """
    if isinstance(value, enumClass):
        return value
    if isinstance(value, str):
        name = value.strip().upper()
        if name in enumClass.__members__:
            return enumClass[name]
        if not name.isdigit():
            return None
        value = int(name)
    try:
        return enumClass(value)
    except ValueError:
        return None


def isValidTransition(
    transitions: dict[Any, list[Any]], old_state: Any, new_state: Any
) -> bool:
    """
    Check if a state transition is valid.

    Args:
        transitions (dict[Any, list[Any]]): Mapping of valid transitions.
            Example:
                {
                    BookingStatus.CONFIRMED: [BookingStatus.SCANNED, BookingStatus.CANCELLED],
                    BookingStatus.SCANNED: [],
                }
        old_state (Any): Current state value.
        new_state (Any): Desired new state value.

    Returns:
        bool: True if transition is valid, False otherwise.

    Notes:
        - If `old_state` is not in the transitions mapping, this will return False.
    """
    if not transitions:
        return False
    if old_state not in transitions:
        return False
    return new_state in transitions[old_state]


def departureOf(trip_date: date, departure_time: time) -> datetime:
    """
    Combine a trip date and departure time into an aware datetime.

    Trip dates and times are entered in the campus timezone (`TMZ_SECONDARY`).
    """
    return datetime.combine(trip_date, departure_time, tzinfo=TMZ_SECONDARY)


def dayTypeOf(trip_date: date) -> DayType:
    """Saturday and Sunday trips run on the weekend timetable."""
    return DayType.WEEKEND if trip_date.weekday() >= 5 else DayType.WEEKDAY


def resizeImage(
    imageBytes: bytes, format: str, height: int = None, width: int = None
) -> bytes:
    """
    Resize an image (bytes) to fit the given width and height while preserving aspect ratio.

    If `height` or `width` is not provided, the original dimension is used.
    The output image is always converted to RGB mode to avoid format issues
    (e.g., when saving PNG with transparency to JPEG).

    Raises:
        UnidentifiedImageError: If the bytes are not a readable image.
    """
    image = Image.open(BytesIO(imageBytes))

    if height is None:
        height = image.height
    if width is None:
        width = image.width

    newSize = (width, height)
    image.thumbnail(newSize)  # preserves aspect ratio, fits inside box

    if image.mode != "RGB":
        image = image.convert("RGB")

    with BytesIO() as outputBuffer:
        image.save(outputBuffer, format)
        return outputBuffer.getvalue()


def isImage(imageBytes: bytes) -> bool:
    """Check whether the bytes decode to an image Pillow can read."""
    try:
        with Image.open(BytesIO(imageBytes)) as image:
            image.verify()
        return True
    except (UnidentifiedImageError, OSError, SyntaxError):
        return False
