import uuid
from datetime import datetime, timedelta, timezone

import httpx
from jose import jwt

from ticketing.models import AppRole, Club, ClubRole, Event, EventRegistration, UserRole

SIGNING_SECRET = "test-signing-secret"
SESSION_SECRET = "test-session-secret"


def new_user_id() -> str:
    return str(uuid.uuid4())


def session_token(user_id: str, secret: str = SESSION_SECRET, ttl_minutes: int = 60) -> str:
    exp = int((datetime.now(timezone.utc) + timedelta(minutes=ttl_minutes)).timestamp())
    return jwt.encode({"sub": user_id, "aud": "authenticated", "exp": exp}, secret, algorithm="HS256")


def auth_headers(user_id: str) -> dict:
    return {"Authorization": f"Bearer {session_token(user_id)}"}


def seed_event(db, creator_id: str, name="Robotics Club", title="Demo Night"):
    club = Club(name=name, created_by=creator_id)
    db.add(club)
    db.flush()
    event = Event(club_id=club.id, title=title)
    db.add(event)
    db.commit()
    return club, event


def seed_registration(db, event: Event, user_id: str) -> EventRegistration:
    registration = EventRegistration(event_id=event.id, user_id=user_id)
    db.add(registration)
    db.commit()
    return registration


def grant_admin(db, user_id: str):
    db.add(UserRole(user_id=user_id, role=AppRole.ADMIN.value))
    db.commit()


def grant_club_role(db, club: Club, user_id: str, role: str, is_active: bool = True):
    db.add(ClubRole(club_id=club.id, user_id=user_id, role=role, is_active=is_active))
    db.commit()


async def generate_qr(client: httpx.AsyncClient, user_id: str, registration_id: str) -> httpx.Response:
    return await client.post(
        "/generate-qr-code",
        json={"registrationId": registration_id},
        headers=auth_headers(user_id),
    )


async def check_in(client: httpx.AsyncClient, user_id: str, qr_code: str) -> httpx.Response:
    return await client.post(
        "/check-in-attendee",
        json={"qrCode": qr_code},
        headers=auth_headers(user_id),
    )
