from secrets import token_hex
from sqlalchemy import (
    TEXT,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Time,
    UniqueConstraint,
    CheckConstraint,
    create_engine,
    func,
    text,
)
from sqlalchemy.orm import declarative_base, sessionmaker

from campus_bus.src.constants import (
    DB_URL,
    PSQL_DB_DRIVER,
    PSQL_DB_HOST,
    PSQL_DB_PASSWORD,
    PSQL_DB_NAME,
    PSQL_DB_PORT,
    PSQL_DB_USERNAME,
)
from campus_bus.src.enums import (
    AccountStatus,
    BookingStatus,
    IncidentType,
    PlatformType,
    TripStatus,
)


# Global DBMS variables
dbURL = (
    DB_URL
    or f"{PSQL_DB_DRIVER}://{PSQL_DB_USERNAME}:{PSQL_DB_PASSWORD}@{PSQL_DB_HOST}:{PSQL_DB_PORT}/{PSQL_DB_NAME}"
)
engine = create_engine(url=dbURL, echo=False)
sessionMaker = sessionmaker(bind=engine, expire_on_commit=False)
ORMbase = declarative_base()


# ----------------------------------- Account DB Models ---------------------------------------#
class Student(ORMbase):
    """
    Represents a student account, the passenger side of the booking system.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the student.

        email (String(256)):
            Campus email address used for login.
            Must end with `ALLOWED_EMAIL_DOMAIN`.
            Stored in lower case. Must not be null and unique.

        name (String(64)):
            Full name of the student, shown to operators while boarding.

        password (TEXT):
            Hashed password used for authentication.
            Plaintext should never be stored here. Argon2 is used for secure hashing.

        room (String(32)):
            Hostel room of the student. Optional.

        phone (String(32)):
            Contact phone number of the student. Optional.

        penalty_count (Integer):
            Number of incidents reported against the student by operators.
            Reaching `MAX_PENALTY_COUNT` blocks the account.

        status (Integer):
            Indicates the account status.
            Mapped from the `AccountStatus` enum. Defaults to `AccountStatus.ACTIVE`.
            A `BLOCKED` student cannot create new bookings.

        updated_on (DateTime):
            Timestamp automatically updated whenever the profile is modified.

        created_on (DateTime):
            Timestamp of when the student account was created.
    """

    __tablename__ = "student"

    id = Column(Integer, primary_key=True)
    email = Column(String(256), nullable=False, unique=True)
    name = Column(String(64), nullable=False)
    password = Column(TEXT, nullable=False)
    room = Column(String(32))
    phone = Column(String(32))
    penalty_count = Column(Integer, nullable=False, default=0)
    status = Column(Integer, nullable=False, default=AccountStatus.ACTIVE)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class StudentToken(ORMbase):
    """
    Represents authentication tokens issued to students.

    Columns:
        id (Integer):
            Primary key. A unique identifier for each student token record.

        student_id (Integer):
            Foreign key referencing `student.id`.
            Cascades on delete, removing a student deletes associated tokens.

        access_token (String(64)):
            Secure token string used for authentication.
            Default is a 64-character random hexadecimal string generated using `token_hex(32)`.

        expires_in (Integer):
            Duration (in seconds) for which the token remains valid from the time of creation.

        expires_at (DateTime):
            Absolute timestamp indicating when the token becomes invalid.

        platform_type (Integer):
            Type of device or platform from which the token was issued.
            Defaults to `PlatformType.OTHER`.

        client_details (TEXT):
            Optional description of the client device or environment.

        updated_on (DateTime):
            Timestamp that updates automatically whenever the record is modified.

        created_on (DateTime):
            Timestamp marking when the token was created.
    """

    __tablename__ = "student_token"

    id = Column(Integer, primary_key=True)
    student_id = Column(
        Integer,
        ForeignKey("student.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    access_token = Column(
        String(64), unique=True, nullable=False, default=lambda: token_hex(32)
    )
    expires_in = Column(Integer, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    # Device related details
    platform_type = Column(Integer, default=PlatformType.OTHER)
    client_details = Column(TEXT)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Operator(ORMbase):
    """
    Represents a bus operator (driver or conductor) account.

    Operators scan boarding passes, list passengers and report incidents.
    Operators holding the `manage_trip` permission also create and cancel trips
    and may cancel any booking.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the operator account.

        employee_id (String(32)):
            Staff identifier used for login. Must not be null and unique.

        password (TEXT):
            Hashed password used for authentication (Argon2).

        full_name (TEXT):
            The full name of the operator (optional).

        manage_trip (Boolean):
            Whether the operator may create trips, cancel trips and cancel bookings.

        status (Integer):
            Enum representing the account's current status.
            Defaults to `AccountStatus.ACTIVE`.

        updated_on (DateTime):
            Timestamp automatically updated whenever the account is modified.

        created_on (DateTime):
            Timestamp of when the operator account was created.
    """

    __tablename__ = "operator"

    id = Column(Integer, primary_key=True)
    employee_id = Column(String(32), nullable=False, unique=True)
    password = Column(TEXT, nullable=False)
    full_name = Column(TEXT)
    manage_trip = Column(Boolean, nullable=False, default=False)
    status = Column(Integer, nullable=False, default=AccountStatus.ACTIVE)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class OperatorToken(ORMbase):
    """
    Represents authentication tokens issued to operators.
    Same layout as `StudentToken`, bound to `operator.id`.
    """

    __tablename__ = "operator_token"

    id = Column(Integer, primary_key=True)
    operator_id = Column(
        Integer,
        ForeignKey("operator.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    access_token = Column(
        String(64), unique=True, nullable=False, default=lambda: token_hex(32)
    )
    expires_in = Column(Integer, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    # Device related details
    platform_type = Column(Integer, default=PlatformType.OTHER)
    client_details = Column(TEXT)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


# ----------------------------------- Trip DB Models ------------------------------------------#
class Trip(ORMbase):
    """
    Represents a single scheduled bus departure on a route and date.

    The trip owns the seat ledger of the booking engine: `booked_count` is only
    ever changed through a conditional update, so it never exceeds the
    bookable capacity `capacity - faculty_reserved`.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the trip.

        route (Integer):
            Direction of travel. Mapped from the `TripRoute` enum.

        destination (String(64)):
            Display name of the destination stop.

        bus_number (String(32)):
            Registration or fleet number of the assigned bus.

        trip_date (Date):
            Date of departure, in the campus timezone.

        departure_time (Time):
            Time of departure, in the campus timezone.

        capacity (Integer):
            Total number of seats in the bus. Must be positive.

        faculty_reserved (Integer):
            Seats held back for staff. Must be between 0 and `capacity`.

        booked_count (Integer):
            Number of seats currently held by CONFIRMED or SCANNED bookings.

        status (Integer):
            Enum representing the trip status.
            Defaults to `TripStatus.SCHEDULED`.

        private_key (TEXT):
            PEM private key used to sign the QR tokens of this trip.

        public_key (TEXT):
            PEM public key used to verify the QR tokens of this trip.

        started_on (DateTime):
            Time at which an operator started the trip.

        finished_on (DateTime):
            Time at which the trip was completed or cancelled.

        updated_on (DateTime):
            Timestamp automatically updated whenever the trip is modified.

        created_on (DateTime):
            Timestamp indicating when the trip was created.
    """

    __tablename__ = "trip"
    __table_args__ = (
        CheckConstraint("booked_count >= 0"),
        CheckConstraint("faculty_reserved >= 0"),
        CheckConstraint("booked_count <= capacity - faculty_reserved"),
    )

    id = Column(Integer, primary_key=True)
    route = Column(Integer, nullable=False)
    destination = Column(String(64), nullable=False)
    bus_number = Column(String(32), nullable=False)
    trip_date = Column(Date, nullable=False, index=True)
    departure_time = Column(Time, nullable=False)
    capacity = Column(Integer, nullable=False)
    faculty_reserved = Column(Integer, nullable=False, default=0)
    booked_count = Column(Integer, nullable=False, default=0)
    status = Column(Integer, nullable=False, default=TripStatus.SCHEDULED)
    private_key = Column(TEXT, nullable=False)
    public_key = Column(TEXT, nullable=False)
    started_on = Column(DateTime(timezone=True))
    finished_on = Column(DateTime(timezone=True))
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Booking(ORMbase):
    """
    Represents a student's claim on a trip, confirmed or waitlisted.

    Bookings are never deleted, cancelled bookings are kept for history and audit.
    The waitlist position is not stored here, it is derived from `WaitlistEntry`.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the booking.

        trip_id (Integer):
            Foreign key referencing `trip.id`.

        student_id (Integer):
            Foreign key referencing `student.id`.

        status (Integer):
            Enum representing the booking status. Mapped from `BookingStatus`.

        qr_token (TEXT):
            Signed boarding token. Set only while the booking is CONFIRMED or SCANNED.
            Unique when present.

        scanned_on (DateTime):
            Time at which the QR token was accepted at boarding.

        cancelled_on (DateTime):
            Time at which the booking was cancelled.

        updated_on (DateTime):
            Timestamp automatically updated whenever the booking is modified.

        created_on (DateTime):
            Timestamp indicating when the booking was requested.

    Constraints:
        Partial unique index (student_id, trip_id) where status != CANCELLED:
            At most one live booking per student per trip.
    """

    __tablename__ = "booking"
    __table_args__ = (
        Index(
            "booking_live_student_trip",
            "student_id",
            "trip_id",
            unique=True,
            postgresql_where=text(f"status != {BookingStatus.CANCELLED.value}"),
            sqlite_where=text(f"status != {BookingStatus.CANCELLED.value}"),
        ),
    )

    id = Column(Integer, primary_key=True)
    trip_id = Column(
        Integer, ForeignKey("trip.id", ondelete="CASCADE"), nullable=False, index=True
    )
    student_id = Column(
        Integer,
        ForeignKey("student.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status = Column(Integer, nullable=False)
    qr_token = Column(TEXT, unique=True)
    scanned_on = Column(DateTime(timezone=True))
    cancelled_on = Column(DateTime(timezone=True))
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class WaitlistEntry(ORMbase):
    """
    Append-only FIFO index of waitlisted bookings.

    The monotonic `id` is the queue order, ties on `created_on` are therefore
    broken by insertion order. Entries are removed when their booking is
    promoted or cancelled.

    Columns:
        id (Integer):
            Primary key. Position in the global insertion order.

        trip_id (Integer):
            Foreign key referencing `trip.id`.

        booking_id (Integer):
            Foreign key referencing `booking.id`. Unique.

        created_on (DateTime):
            Timestamp at which the booking joined the waitlist.
    """

    __tablename__ = "waitlist_entry"

    id = Column(Integer, primary_key=True)
    trip_id = Column(
        Integer, ForeignKey("trip.id", ondelete="CASCADE"), nullable=False, index=True
    )
    booking_id = Column(
        Integer,
        ForeignKey("booking.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class IncidentReport(ORMbase):
    """
    Represents an incident reported by an operator against a student.

    Columns:
        id (Integer):
            Primary key.

        trip_id (Integer):
            Foreign key referencing `trip.id`.

        operator_id (Integer):
            Foreign key referencing `operator.id`. The reporting operator.

        student_id (Integer):
            Foreign key referencing `student.id`. The reported student.

        incident_type (Integer):
            Mapped from the `IncidentType` enum.

        description (TEXT):
            Free text written by the operator. Maximum 1024 characters.

        picture (String(64)):
            Object ID of the photo in the `INCIDENT_PICTURES` bucket, if any.

        created_on (DateTime):
            Timestamp indicating when the report was filed.
    """

    __tablename__ = "incident_report"

    id = Column(Integer, primary_key=True)
    trip_id = Column(
        Integer, ForeignKey("trip.id", ondelete="CASCADE"), nullable=False, index=True
    )
    operator_id = Column(
        Integer, ForeignKey("operator.id", ondelete="CASCADE"), nullable=False
    )
    student_id = Column(
        Integer,
        ForeignKey("student.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    incident_type = Column(Integer, nullable=False, default=IncidentType.OTHER)
    description = Column(TEXT)
    picture = Column(String(64))
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class TripTrace(ORMbase):
    """
    Last known position of a trip, reported by the operator app.

    Columns:
        id (Integer):
            Primary key.

        trip_id (Integer):
            Foreign key referencing `trip.id`. Unique, one trace per trip.

        operator_id (Integer):
            Foreign key referencing `operator.id`. The operator who reported last.

        latitude (Float):
            WGS84 latitude in degrees, within [-90, 90].

        longitude (Float):
            WGS84 longitude in degrees, within [-180, 180].

        accuracy (Float):
            Reported accuracy radius in meters, optional.

        updated_on (DateTime):
            Timestamp of the latest position update.

        created_on (DateTime):
            Timestamp of the first position update.
    """

    __tablename__ = "trip_trace"
    __table_args__ = (UniqueConstraint("trip_id"),)

    id = Column(Integer, primary_key=True)
    trip_id = Column(
        Integer, ForeignKey("trip.id", ondelete="CASCADE"), nullable=False
    )
    operator_id = Column(
        Integer, ForeignKey("operator.id", ondelete="SET NULL"), nullable=True
    )
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    accuracy = Column(Float)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())
