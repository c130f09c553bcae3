"""Pickup/Return Credential Issuer.

A credential is a signed JWT handed to the farmer as a QR code and scanned by
the operator at pickup and return. Claims:

    typ  "rental_credential"
    jti  random id, primary key of the stored RentalCredential row
    rid  rental request id
    eid  equipment id
    pur  "pickup" | "return"
    bh   binding hash over (rid, eid, pur, jti), keyed with the signing key
    iat  issue time

Verification compares SHA-256(token) against the stored hash; the token itself
is kept only Fernet-encrypted so its owner can display the QR code again.
Each credential is consumed once.
"""

import base64
import hashlib
import hmac
import io
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import qrcode
from jose import JWTError, jwt

from agri_rental.config import settings
from agri_rental.exceptions import CredentialAlreadyConsumed, CredentialInvalid
from agri_rental.models.rental_request import CredentialPurpose, RentalCredential, RentalRequest
from agri_rental.services.encryption import decrypt_value, encrypt_value

logger = logging.getLogger(__name__)

TOKEN_TYPE = "rental_credential"
CREDENTIAL_ALGORITHM = "HS256"


def _signing_key() -> str:
    """Derive a credential-only key so session tokens and credentials never verify as each other."""
    digest = hmac.new(settings.SECRET_KEY.encode("utf-8"), b"rental-credential", hashlib.sha256)
    return digest.hexdigest()


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def binding_hash(request_id: int, equipment_id: int, purpose: str, jti: str) -> str:
    message = f"{request_id}:{equipment_id}:{purpose}:{jti}".encode("utf-8")
    return hmac.new(_signing_key().encode("utf-8"), message, hashlib.sha256).hexdigest()


@dataclass
class IssuedCredential:
    """A freshly minted token plus the row to persist for it."""

    token: str
    record: RentalCredential


class CredentialIssuer:
    """Mints and checks pickup/return credentials."""

    def issue(self, request: RentalRequest, purpose: CredentialPurpose, now: Optional[datetime] = None) -> IssuedCredential:
        now = now or datetime.now(timezone.utc)
        jti = secrets.token_urlsafe(24)
        claims = {
            "typ": TOKEN_TYPE,
            "jti": jti,
            "rid": request.id,
            "eid": request.equipment_id,
            "pur": purpose.value,
            "bh": binding_hash(request.id, request.equipment_id, purpose.value, jti),
            "iat": int(now.timestamp()),
        }
        token = jwt.encode(claims, _signing_key(), algorithm=CREDENTIAL_ALGORITHM)
        record = RentalCredential(
            id=jti,
            request_id=request.id,
            equipment_id=request.equipment_id,
            purpose=purpose.value,
            token_hash=hash_token(token),
            token_encrypted=encrypt_value(token),
            issued_at=now,
        )
        logger.info("Issued %s credential for rental request %s", purpose.value, request.id)
        return IssuedCredential(token=token, record=record)

    def decode(self, token: str) -> dict:
        """Verify the signature and shape of a scanned token."""
        try:
            claims = jwt.decode(token, _signing_key(), algorithms=[CREDENTIAL_ALGORITHM])
        except JWTError:
            raise CredentialInvalid("Credential signature or format is invalid")

        required = ("typ", "jti", "rid", "eid", "pur", "bh")
        if claims.get("typ") != TOKEN_TYPE or any(key not in claims for key in required):
            raise CredentialInvalid("Credential is not a rental credential")
        return claims

    def verify(
        self,
        token: str,
        request: RentalRequest,
        purpose: CredentialPurpose,
        record: Optional[RentalCredential],
    ) -> RentalCredential:
        """Check ``token`` against the request and its stored credential.

        ``record`` is the stored row whose id equals the token's ``jti`` (or
        None when no such row exists). Raises ``CredentialInvalid`` or
        ``CredentialAlreadyConsumed``; never mutates anything.
        """
        claims = self.decode(token)

        if claims["pur"] != purpose.value:
            raise CredentialInvalid(f"Credential is for {claims['pur']}, not {purpose.value}")
        if claims["rid"] != request.id or claims["eid"] != request.equipment_id:
            raise CredentialInvalid("Credential was issued for a different rental")

        expected = binding_hash(request.id, request.equipment_id, purpose.value, claims["jti"])
        if not hmac.compare_digest(expected, str(claims["bh"])):
            raise CredentialInvalid("Credential binding does not match")

        if (
            record is None
            or record.request_id != request.id
            or record.purpose != purpose.value
            or not hmac.compare_digest(record.token_hash, hash_token(token))
        ):
            raise CredentialInvalid("Credential was not issued by this service")
        if record.is_consumed:
            raise CredentialAlreadyConsumed(purpose.value)
        return record

    def reveal(self, record: RentalCredential) -> Optional[str]:
        """Decrypt a stored credential for display to its owner."""
        token = decrypt_value(record.token_encrypted)
        if token is None or not hmac.compare_digest(record.token_hash, hash_token(token)):
            return None
        return token

    @staticmethod
    def jti_of(token: str) -> Optional[str]:
        """Read ``jti`` without verifying, for looking up the stored row."""
        try:
            return jwt.get_unverified_claims(token).get("jti")
        except JWTError:
            return None


def verification_url(request: RentalRequest, purpose: CredentialPurpose) -> str:
    return f"{settings.FRONTEND_URL}/equipment-verification/{purpose.value}_{request.id}_{request.farmer_id}"


def generate_qr_code(data: str) -> bytes:
    """Render ``data`` as a PNG QR code."""
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=settings.CREDENTIAL_QR_BOX_SIZE,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def generate_qr_code_base64(data: str) -> str:
    """QR code as a ``data:`` URI for the mobile app."""
    b64 = base64.b64encode(generate_qr_code(data)).decode("utf-8")
    return f"data:image/png;base64,{b64}"


credential_issuer = CredentialIssuer()
