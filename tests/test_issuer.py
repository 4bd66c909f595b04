from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError

from ticketing.errors import ErrorKind, TicketError
from ticketing.issuer import issue_ticket
from ticketing.models import EventRegistration
from ticketing.security import TICKET_TTL, to_millis
from tests.helpers import new_user_id, seed_event, seed_registration


def test_issue_stores_token_on_registration(db, codec):
    holder = new_user_id()
    _, event = seed_event(db, creator_id=new_user_id())
    registration = seed_registration(db, event, holder)
    now = datetime(2026, 3, 1, 18, 0, tzinfo=timezone.utc)

    token = issue_ticket(db, codec, holder, registration.id, now=now)

    db.expire_all()
    assert db.get(EventRegistration, registration.id).qr_code == token
    ticket = codec.decode(token)
    assert ticket.registration_id == registration.id
    assert ticket.issued_at == to_millis(now)
    assert ticket.expires_at == to_millis(now + TICKET_TTL)


def test_reissue_replaces_previous_token(db, codec):
    holder = new_user_id()
    _, event = seed_event(db, creator_id=new_user_id())
    registration = seed_registration(db, event, holder)

    first = issue_ticket(db, codec, holder, registration.id, now=datetime(2026, 3, 1, tzinfo=timezone.utc))
    second = issue_ticket(db, codec, holder, registration.id, now=datetime(2026, 3, 2, tzinfo=timezone.utc))

    assert first != second
    db.expire_all()
    assert db.get(EventRegistration, registration.id).qr_code == second


@pytest.mark.parametrize("registration_id", ["", "abc", "1; DROP TABLE event_registrations", "3f1c2a9e8b7d4c6e9f0a1b2c3d4e5f60"])
def test_malformed_id_is_not_found_or_forbidden(db, codec, registration_id):
    with pytest.raises(TicketError) as exc:
        issue_ticket(db, codec, new_user_id(), registration_id)
    assert exc.value.kind is ErrorKind.NOT_FOUND_OR_FORBIDDEN


def test_missing_and_foreign_registrations_look_the_same(db, codec):
    holder, stranger = new_user_id(), new_user_id()
    _, event = seed_event(db, creator_id=new_user_id())
    registration = seed_registration(db, event, holder)

    with pytest.raises(TicketError) as missing:
        issue_ticket(db, codec, stranger, new_user_id())
    with pytest.raises(TicketError) as foreign:
        issue_ticket(db, codec, stranger, registration.id)

    assert missing.value.kind is foreign.value.kind is ErrorKind.NOT_FOUND_OR_FORBIDDEN
    db.expire_all()
    assert db.get(EventRegistration, registration.id).qr_code is None


def test_persistence_failure_is_internal(db, codec, monkeypatch):
    holder = new_user_id()
    _, event = seed_event(db, creator_id=new_user_id())
    registration = seed_registration(db, event, holder)

    def broken_commit():
        raise OperationalError("UPDATE event_registrations", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db, "commit", broken_commit)
    with pytest.raises(TicketError) as exc:
        issue_ticket(db, codec, holder, registration.id)
    assert exc.value.kind is ErrorKind.INTERNAL


def test_uppercase_registration_id_is_accepted(db, codec):
    holder = new_user_id()
    _, event = seed_event(db, creator_id=new_user_id())
    registration = seed_registration(db, event, holder)

    token = issue_ticket(db, codec, holder, registration.id.upper())

    assert codec.decode(token).registration_id == registration.id
    db.expire_all()
    assert db.get(EventRegistration, registration.id).qr_code == token
