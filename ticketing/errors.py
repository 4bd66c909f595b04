import enum
from typing import Optional


class ErrorKind(str, enum.Enum):
    """Closed set of ticketing failures.

    Each kind carries the HTTP status and the message a client is allowed to
    see. MALFORMED and FORGED share both so a caller cannot tell a broken
    token from a tampered one.
    """

    UNAUTHENTICATED = "UNAUTHENTICATED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    NOT_FOUND_OR_FORBIDDEN = "NOT_FOUND_OR_FORBIDDEN"
    MALFORMED = "MALFORMED"
    FORGED = "FORGED"
    EXPIRED = "EXPIRED"
    RATE_LIMITED = "RATE_LIMITED"
    INTERNAL = "INTERNAL"

    @property
    def status_code(self) -> int:
        return _STATUS[self]

    @property
    def public_message(self) -> str:
        return _MESSAGES[self]


_STATUS = {
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.NOT_FOUND_OR_FORBIDDEN: 404,
    ErrorKind.MALFORMED: 400,
    ErrorKind.FORGED: 400,
    ErrorKind.EXPIRED: 410,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.INTERNAL: 500,
}

_MESSAGES = {
    ErrorKind.UNAUTHENTICATED: "Unauthorized",
    ErrorKind.FORBIDDEN: "Only club leaders can check in attendees",
    ErrorKind.NOT_FOUND: "Registration not found",
    ErrorKind.NOT_FOUND_OR_FORBIDDEN: "Registration not found or unauthorized",
    ErrorKind.MALFORMED: "Invalid QR code",
    ErrorKind.FORGED: "Invalid QR code",
    ErrorKind.EXPIRED: "QR code has expired",
    ErrorKind.RATE_LIMITED: "Too many requests",
    ErrorKind.INTERNAL: "Operation failed",
}


class TicketError(Exception):
    def __init__(self, kind: ErrorKind, detail: str = "", registration_id: Optional[str] = None):
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)
        self.kind = kind
        self.detail = detail
        self.registration_id = registration_id
