import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .authz import can_check_in
from .errors import ErrorKind, TicketError
from .models import CheckedIn, Event, EventRegistration
from .security import TicketCodec, to_millis

logger = logging.getLogger(__name__)


@dataclass
class CheckInResult:
    registration: EventRegistration
    first_check_in: bool  # False when someone already checked this registration in


def redeem_ticket(
    db: Session,
    codec: TicketCodec,
    user_id: str,
    token: str,
    now: Optional[datetime] = None,
) -> CheckInResult:
    """Validate a scanned ticket and check its holder in, once.

    NotCheckedIn -> CheckedIn is the only transition. A second scan of the
    same ticket, or losing a race against another scanner, returns the
    existing state with first_check_in=False instead of failing.
    """
    now = now or datetime.now(timezone.utc)

    ticket = codec.decode(token)
    if ticket.is_expired(to_millis(now)):
        raise TicketError(ErrorKind.EXPIRED, f"expired at {ticket.expires_at}", registration_id=ticket.registration_id)

    registration_id = ticket.registration_id
    try:
        row = db.execute(
            select(EventRegistration, Event.club_id)
            .join(Event, Event.id == EventRegistration.event_id)
            .where(EventRegistration.id == registration_id, EventRegistration.qr_code == token)
        ).first()
        if row is None:
            raise TicketError(ErrorKind.NOT_FOUND, "no registration holds this ticket", registration_id=registration_id)
        registration, club_id = row

        if isinstance(registration.check_in_state, CheckedIn):
            return CheckInResult(registration=registration, first_check_in=False)

        if not can_check_in(db, user_id, club_id):
            raise TicketError(
                ErrorKind.FORBIDDEN,
                f"user {user_id} is not a leader of club {club_id}",
                registration_id=registration_id,
            )

        # Conditional write: only one concurrent redeemer can match checked_in_at IS NULL
        result = db.execute(
            update(EventRegistration)
            .where(
                EventRegistration.id == registration_id,
                EventRegistration.checked_in_at.is_(None),
                EventRegistration.qr_code == token,
            )
            .values(checked_in_at=now, attended=True)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        db.refresh(registration)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("check-in failed for registration %s", registration_id)
        raise TicketError(ErrorKind.INTERNAL, "check-in persistence failed", registration_id=registration_id)

    if result.rowcount == 0:
        if isinstance(registration.check_in_state, CheckedIn):
            logger.info("registration %s was checked in by a concurrent scan", registration_id)
            return CheckInResult(registration=registration, first_check_in=False)
        # The ticket was replaced between the lookup and the write
        raise TicketError(ErrorKind.NOT_FOUND, "ticket superseded during check-in", registration_id=registration_id)

    logger.info("attendee checked in: %s by %s", registration_id, user_id)
    return CheckInResult(registration=registration, first_check_in=True)
