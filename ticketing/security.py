import base64
import binascii
import hashlib
import hmac
import re
from dataclasses import dataclass
from datetime import datetime, timedelta

from .errors import ErrorKind, TicketError

TICKET_TTL = timedelta(hours=24)

_DIGITS = re.compile(r"^[0-9]+$")


def to_millis(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


@dataclass(frozen=True)
class DecodedTicket:
    registration_id: str
    issued_at: int  # unix millis
    expires_at: int  # unix millis
    signature: str

    def is_expired(self, now_ms: int) -> bool:
        return now_ms > self.expires_at


class TicketCodec:
    """Signs and verifies QR ticket tokens.

    Wire format: base64("<registration_id>:<issued_ms>:<expires_ms>:<b64 hmac>").
    The HMAC-SHA256 covers the first three fields.
    """

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("signing secret must not be empty")
        self._key = secret.encode("utf-8")

    def sign(self, payload: str) -> str:
        digest = hmac.new(self._key, payload.encode("utf-8"), hashlib.sha256).digest()
        return base64.b64encode(digest).decode("ascii")

    def encode(self, registration_id: str, issued_at: int, expires_at: int) -> str:
        payload = f"{registration_id}:{issued_at}:{expires_at}"
        raw = f"{payload}:{self.sign(payload)}"
        return base64.b64encode(raw.encode("utf-8")).decode("ascii")

    def decode(self, token: str) -> DecodedTicket:
        if not isinstance(token, str) or not token:
            raise TicketError(ErrorKind.MALFORMED, "empty token")

        try:
            raw_bytes = base64.b64decode(token, validate=True)
        except (binascii.Error, ValueError):
            raise TicketError(ErrorKind.MALFORMED, "not base64")

        # Only the canonical encoding is accepted, so no two strings map to one ticket
        if base64.b64encode(raw_bytes).decode("ascii") != token:
            raise TicketError(ErrorKind.MALFORMED, "non-canonical base64")

        try:
            raw = raw_bytes.decode("ascii")
        except UnicodeDecodeError:
            raise TicketError(ErrorKind.MALFORMED, "non-ascii payload")

        parts = raw.split(":")
        if len(parts) != 4:
            raise TicketError(ErrorKind.MALFORMED, f"expected 4 fields, got {len(parts)}")

        registration_id, issued_at, expires_at, signature = parts
        if not registration_id or not _DIGITS.match(issued_at) or not _DIGITS.match(expires_at):
            raise TicketError(ErrorKind.MALFORMED, "bad field values")

        expected = self.sign(f"{registration_id}:{issued_at}:{expires_at}")
        if not hmac.compare_digest(expected.encode("ascii"), signature.encode("ascii")):
            raise TicketError(ErrorKind.FORGED, "signature mismatch")

        return DecodedTicket(
            registration_id=registration_id,
            issued_at=int(issued_at),
            expires_at=int(expires_at),
            signature=signature,
        )
