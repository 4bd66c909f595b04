from sqlalchemy import select
from sqlalchemy.orm import Session

from .models import AppRole, Club, ClubRole, LEADERSHIP_ROLES, UserRole

ELEVATED_ROLES = (AppRole.ADMIN,)


def can_check_in(db: Session, user_id: str, club_id: str) -> bool:
    """True if user_id may check attendees in for club_id's events.

    Club creator, platform admins and active club leadership qualify.
    """
    club = db.get(Club, club_id)
    if club is None:
        return False
    if club.created_by == user_id:
        return True

    elevated = db.execute(
        select(UserRole.id).where(
            UserRole.user_id == user_id,
            UserRole.role.in_([r.value for r in ELEVATED_ROLES]),
        ).limit(1)
    ).first()
    if elevated:
        return True

    leader = db.execute(
        select(ClubRole.id).where(
            ClubRole.club_id == club_id,
            ClubRole.user_id == user_id,
            ClubRole.is_active.is_(True),
            ClubRole.role.in_([r.value for r in LEADERSHIP_ROLES]),
        ).limit(1)
    ).first()
    return leader is not None
