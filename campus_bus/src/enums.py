from enum import IntEnum


class AppID(IntEnum):
    STUDENT = 1
    OPERATOR = 2


class AccountStatus(IntEnum):
    ACTIVE = 1
    SUSPENDED = 2
    BLOCKED = 3


class PlatformType(IntEnum):
    OTHER = 1
    WEB = 2
    NATIVE = 3
    SERVER = 4


class TripRoute(IntEnum):
    CAMPUS_TO_CITY = 1
    CITY_TO_CAMPUS = 2


class DayType(IntEnum):
    WEEKDAY = 1
    WEEKEND = 2


class TripStatus(IntEnum):
    SCHEDULED = 1
    ACTIVE = 2
    COMPLETED = 3
    CANCELLED = 4


class BookingStatus(IntEnum):
    CONFIRMED = 1
    WAITLIST = 2
    CANCELLED = 3
    SCANNED = 4


class QRStatus(IntEnum):
    VALID = 1
    DUPLICATE = 2
    INVALID = 3


class IncidentType(IntEnum):
    OTHER = 1
    MISBEHAVIOR = 2
    NO_VALID_QR = 3
