import threading

import pytest

from campus_bus.src.booking import engine, qr
from campus_bus.src.db import sessionMaker
from campus_bus.src.digital_ticket.v1 import BoardingToken, TokenSigner
from campus_bus.src.enums import BookingStatus, QRStatus

from conftest import makeStudent, makeTrip


def test_token_round_trip():
    signer = TokenSigner()
    token = signer.createToken(42, 7)
    loaded = BoardingToken.load(str(token))

    assert str(token)[0] == "1"
    assert loaded.bookingID == 42
    assert loaded.tripID == 7
    assert signer.verify(loaded)


def test_tokens_are_unique_per_issue():
    signer = TokenSigner()
    assert str(signer.createToken(1, 1)) != str(signer.createToken(1, 1))


def test_token_from_other_key_fails():
    token = TokenSigner().createToken(1, 1)
    assert not TokenSigner().verify(token)


def test_public_key_alone_verifies():
    signer = TokenSigner()
    verifier = TokenSigner(pem_public_key=signer.getPEMpublicKeyString().encode())
    assert verifier.verify(signer.createToken(3, 4))


@pytest.mark.parametrize("token", ["", "x", "2abc", "1", "1short"])
def test_malformed_tokens(token):
    with pytest.raises(ValueError):
        BoardingToken.load(token)


def test_validate_once_then_duplicate(session):
    trip = makeTrip(session)
    booking = engine.createBooking(session, makeStudent(session), trip.id)

    status, scanned = qr.validate(session, booking.qr_token, trip.id)
    assert status == QRStatus.VALID
    assert scanned.id == booking.id
    assert scanned.status == BookingStatus.SCANNED
    assert scanned.scanned_on is not None

    status, _ = qr.validate(session, booking.qr_token, trip.id)
    assert status == QRStatus.DUPLICATE


def test_validate_on_other_trip(session):
    trip = makeTrip(session)
    other = makeTrip(session)
    booking = engine.createBooking(session, makeStudent(session), trip.id)

    status, _ = qr.validate(session, booking.qr_token, other.id)
    assert status == QRStatus.INVALID
    status, _ = qr.validate(session, booking.qr_token, 404)
    assert status == QRStatus.INVALID


def test_validate_garbage(session):
    trip = makeTrip(session)
    status, booking = qr.validate(session, "1not-a-token", trip.id)
    assert status == QRStatus.INVALID
    assert booking is None


def test_validate_forged_token(session):
    trip = makeTrip(session)
    booking = engine.createBooking(session, makeStudent(session), trip.id)
    forged = str(TokenSigner().createToken(booking.id, trip.id))

    status, _ = qr.validate(session, forged, trip.id)
    assert status == QRStatus.INVALID


def test_validate_cancelled_booking(session):
    trip = makeTrip(session)
    booking = engine.createBooking(session, makeStudent(session), trip.id)
    token = booking.qr_token
    engine.cancelBooking(session, booking.id)

    status, _ = qr.validate(session, token, trip.id)
    assert status == QRStatus.INVALID


def test_promoted_booking_gets_working_token(session):
    trip = makeTrip(session, capacity=1)
    first = engine.createBooking(session, makeStudent(session, "Asha"), trip.id)
    engine.createBooking(session, makeStudent(session, "Bala"), trip.id)
    _, promoted = engine.cancelBooking(session, first.id)

    status, booking = qr.validate(session, promoted.qr_token, trip.id)
    assert status == QRStatus.VALID
    assert booking.id == promoted.id


def test_simultaneous_scans_accept_once():
    setup = sessionMaker()
    trip = makeTrip(setup)
    token = engine.createBooking(setup, makeStudent(setup), trip.id).qr_token
    tripID = trip.id
    setup.close()

    results = []
    barrier = threading.Barrier(4)

    def scan():
        session = sessionMaker()
        try:
            barrier.wait()
            results.append(qr.validate(session, token, tripID)[0])
        finally:
            session.close()

    threads = [threading.Thread(target=scan) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(results) == [
        QRStatus.VALID,
        QRStatus.DUPLICATE,
        QRStatus.DUPLICATE,
        QRStatus.DUPLICATE,
    ]
