import logging
import re
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import ErrorKind, TicketError
from .models import EventRegistration
from .security import TICKET_TTL, TicketCodec, to_millis

logger = logging.getLogger(__name__)

_UUID = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)


def issue_ticket(
    db: Session,
    codec: TicketCodec,
    user_id: str,
    registration_id: str,
    now: Optional[datetime] = None,
) -> str:
    """Sign a fresh ticket for the caller's own registration and store it.

    Any previously stored ticket is overwritten and stops being redeemable.
    Malformed ids, unknown registrations and other people's registrations
    all raise the same NOT_FOUND_OR_FORBIDDEN error.
    """
    if not isinstance(registration_id, str) or not _UUID.match(registration_id):
        raise TicketError(ErrorKind.NOT_FOUND_OR_FORBIDDEN, "malformed registration id")
    # Keys are stored in canonical lowercase form
    registration_id = registration_id.lower()

    now = now or datetime.now(timezone.utc)
    issued_at = to_millis(now)
    expires_at = to_millis(now + TICKET_TTL)

    try:
        registration = db.get(EventRegistration, registration_id)
        if registration is None or registration.user_id != user_id:
            raise TicketError(
                ErrorKind.NOT_FOUND_OR_FORBIDDEN,
                "registration missing or held by another user",
                registration_id=registration_id,
            )

        token = codec.encode(registration.id, issued_at, expires_at)
        registration.qr_code = token
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("failed to store ticket for registration %s", registration_id)
        raise TicketError(ErrorKind.INTERNAL, "ticket persistence failed", registration_id=registration_id)

    logger.info("QR code generated for registration %s (expires_at=%d)", registration_id, expires_at)
    return token
