from secrets import token_bytes
from base91 import encode, decode
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)

from campus_bus.src.constants import QR_NONCE_SIZE, QR_TOKEN_VERSION


class BoardingToken:
    """
    A signed boarding credential which is rendered as a QR code by the student
    app and scanned by the operator app.

    Attributes:
        VERSION (int): Token format version.
        SIGNATURE (bytes): The raw (r || s) ECDSA signature of the body.
        BODY (bytes): booking ID (4 bytes) + trip ID (4 bytes) + random nonce.
    """

    def __init__(self, signature: bytes, body: bytes):
        self.VERSION = QR_TOKEN_VERSION
        self.SIGNATURE = signature
        self.BODY = body

    def __str__(self) -> str:
        """
        Serializes the token to a base91-encoded string.
        Format: <VERSION><ENCODED_SIGNATURE+BODY>
        """
        return str(self.VERSION) + encode(self.SIGNATURE + self.BODY)

    @staticmethod
    def load(token: str) -> "BoardingToken":
        """
        Deserializes a token from its string representation.

        Raises:
            ValueError: If the version is unsupported or the payload is truncated.
        """
        if not token or not token[0].isdigit():
            raise ValueError("Malformed boarding token")
        if int(token[0]) != QR_TOKEN_VERSION:
            raise ValueError("Unsupported boarding token version")

        BODY_AND_SIGNATURE = bytes(decode(token[1:]))
        if len(BODY_AND_SIGNATURE) != TokenSigner.SIGNATURE_SIZE + TokenSigner.BODY_SIZE:
            raise ValueError("Malformed boarding token")
        SIGNATURE = BODY_AND_SIGNATURE[: TokenSigner.SIGNATURE_SIZE]
        BODY = BODY_AND_SIGNATURE[TokenSigner.SIGNATURE_SIZE :]
        return BoardingToken(SIGNATURE, BODY)

    @property
    def bookingID(self) -> int:
        return int.from_bytes(self.BODY[:4], byteorder="big", signed=False)

    @property
    def tripID(self) -> int:
        return int.from_bytes(self.BODY[4:8], byteorder="big", signed=False)


class TokenSigner:
    """
    Issues and verifies boarding tokens with the ECDSA key pair of a trip.

    Attributes:
        SIGNATURE_SIZE (int): Size of the raw signature (P-256, r and s of 32 bytes).
        BODY_SIZE (int): Size of the signed body.
    """

    SIGNATURE_SIZE = 64  # Bytes
    R_COMPONENT_SIZE = SIGNATURE_SIZE // 2
    S_COMPONENT_SIZE = SIGNATURE_SIZE // 2
    BODY_SIZE = 8 + QR_NONCE_SIZE  # Bytes

    def __init__(self, pem_private_key: bytes = None, pem_public_key: bytes = None):
        """
        Initializes the signer with optional PEM keys.
        If none are provided, a new SECP256R1 key pair is generated.
        A public key alone is enough to verify tokens.
        """
        self.privateKey = None
        if pem_private_key:
            self.privateKey = serialization.load_pem_private_key(
                pem_private_key, password=None
            )
        if pem_public_key:
            self.publicKey = serialization.load_pem_public_key(pem_public_key)
        elif self.privateKey is not None:
            self.publicKey = self.privateKey.public_key()
        else:
            self.privateKey = ec.generate_private_key(ec.SECP256R1())
            self.publicKey = self.privateKey.public_key()

    def createToken(self, booking_id: int, trip_id: int) -> BoardingToken:
        """
        Creates a signed boarding token. Every call yields a different token
        because a fresh random nonce is part of the signed body.
        """
        INT_32_bookingID = booking_id.to_bytes(4, byteorder="big", signed=False)
        INT_32_tripID = trip_id.to_bytes(4, byteorder="big", signed=False)
        TOKEN_BODY = INT_32_bookingID + INT_32_tripID + token_bytes(QR_NONCE_SIZE)

        ENCODED_SIGNATURE = self.privateKey.sign(TOKEN_BODY, ec.ECDSA(hashes.SHA256()))
        # Decode DER signature to get r and s
        r, s = decode_dss_signature(ENCODED_SIGNATURE)
        TOKEN_SIGNATURE = r.to_bytes(
            self.R_COMPONENT_SIZE, byteorder="big"
        ) + s.to_bytes(self.S_COMPONENT_SIZE, byteorder="big")
        return BoardingToken(TOKEN_SIGNATURE, TOKEN_BODY)

    def verify(self, token: BoardingToken) -> bool:
        """
        Verifies the signature of a token with the public key.

        Returns:
            bool: True if the signature is valid, False otherwise.
        """
        # Use r and s to generate a DER-encoded signature
        r = int.from_bytes(token.SIGNATURE[: self.R_COMPONENT_SIZE], byteorder="big")
        s = int.from_bytes(token.SIGNATURE[self.R_COMPONENT_SIZE :], byteorder="big")
        ENCODED_SIGNATURE = encode_dss_signature(r, s)

        try:
            self.publicKey.verify(
                ENCODED_SIGNATURE, token.BODY, ec.ECDSA(hashes.SHA256())
            )
            return True
        except InvalidSignature:
            return False

    def getPEMprivateKeyString(self) -> str:
        """Serializes the private key to a PEM (PKCS8) string."""
        return self.privateKey.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode("utf-8")

    def getPEMpublicKeyString(self) -> str:
        """Serializes the public key to a PEM (SubjectPublicKeyInfo) string."""
        return self.publicKey.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode("utf-8")
