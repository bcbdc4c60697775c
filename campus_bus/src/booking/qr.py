"""
QR token issuer and validator.

A token is a boarding credential signed with the trip's key pair and stored on
exactly one booking. Validation flips the booking from CONFIRMED to SCANNED
once; any later scan of the same token reports DUPLICATE.
"""

from datetime import datetime, timezone
from typing import Optional, Tuple
from sqlalchemy import update
from sqlalchemy.orm.session import Session

from campus_bus.src.db import Booking, Trip
from campus_bus.src.digital_ticket.v1 import BoardingToken, TokenSigner
from campus_bus.src.enums import BookingStatus, QRStatus
from campus_bus.src.redis import mutex


def newKeyPair() -> Tuple[str, str]:
    """Generate the (private, public) PEM pair given to every new trip."""
    signer = TokenSigner()
    return signer.getPEMprivateKeyString(), signer.getPEMpublicKeyString()


def issue(trip: Trip, booking: Booking) -> str:
    """
    Sign a fresh token for a booking and bind it to the booking.
    Any previous token of the booking stops being valid.
    """
    signer = TokenSigner(
        pem_private_key=trip.private_key.encode(),
        pem_public_key=trip.public_key.encode(),
    )
    token = str(signer.createToken(booking.id, trip.id))
    booking.qr_token = token
    return token


def verify(trip: Trip, token: str) -> Optional[BoardingToken]:
    """
    Parse a scanned token and check it was signed for the given trip.

    Returns:
        Optional[BoardingToken]: None if the token is malformed, was signed
        with another trip's key or names another trip.
    """
    try:
        boardingToken = BoardingToken.load(token)
    except ValueError:
        return None
    if boardingToken.tripID != trip.id:
        return None
    signer = TokenSigner(pem_public_key=trip.public_key.encode())
    if not signer.verify(boardingToken):
        return None
    return boardingToken


def validate(
    session: Session, token: str, tripID: int
) -> Tuple[QRStatus, Optional[Booking]]:
    """
    Validate a scanned token at the door of a trip.

    - INVALID: unknown or forged token, token of another trip, or a booking
      that is cancelled or still waitlisted.
    - DUPLICATE: the booking was already scanned.
    - VALID: the booking moves from CONFIRMED to SCANNED.

    The check and the transition run under the booking's mutex and the
    transition is a conditional update, so two simultaneous scans of one
    token cannot both come back VALID.

    Returns:
        Tuple[QRStatus, Optional[Booking]]: The outcome and the booking the
        token resolved to, if any.
    """
    trip = session.query(Trip).filter(Trip.id == tripID).first()
    if trip is None:
        return QRStatus.INVALID, None
    boardingToken = verify(trip, token)
    if boardingToken is None:
        return QRStatus.INVALID, None

    with mutex(Booking.__tablename__, boardingToken.bookingID):
        try:
            booking = (
                session.query(Booking)
                .filter(
                    Booking.id == boardingToken.bookingID,
                    Booking.trip_id == trip.id,
                )
                .populate_existing()
                .first()
            )
            if booking is None or booking.qr_token != token:
                return QRStatus.INVALID, booking
            if booking.status == BookingStatus.SCANNED:
                return QRStatus.DUPLICATE, booking
            if booking.status != BookingStatus.CONFIRMED:
                return QRStatus.INVALID, booking

            result = session.execute(
                update(Booking)
                .where(
                    Booking.id == booking.id,
                    Booking.status == BookingStatus.CONFIRMED,
                    Booking.qr_token == token,
                )
                .values(
                    status=BookingStatus.SCANNED,
                    scanned_on=datetime.now(timezone.utc),
                )
                .execution_options(synchronize_session=False)
            )
            session.commit()
        except Exception:
            session.rollback()
            raise
        session.refresh(booking)

    if result.rowcount == 1:
        return QRStatus.VALID, booking
    if booking.status == BookingStatus.SCANNED:
        return QRStatus.DUPLICATE, booking
    return QRStatus.INVALID, booking
