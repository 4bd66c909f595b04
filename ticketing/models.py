import enum
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class AppRole(str, enum.Enum):
    STUDENT = "student"
    CLUB_LEADER = "club_leader"
    ADMIN = "admin"


class ClubRoleName(str, enum.Enum):
    MEMBER = "member"
    SECRETARY = "secretary"
    PRESIDENT = "president"
    FACULTY_COORDINATOR = "faculty_coordinator"


# Club roles that may check attendees in at the door
LEADERSHIP_ROLES = (ClubRoleName.SECRETARY, ClubRoleName.PRESIDENT, ClubRoleName.FACULTY_COORDINATOR)


@dataclass(frozen=True)
class NotCheckedIn:
    pass


@dataclass(frozen=True)
class CheckedIn:
    at: datetime


CheckInState = Union[NotCheckedIn, CheckedIn]


class Club(Base):
    __tablename__ = "clubs"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String, index=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(36), index=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Event(Base):
    __tablename__ = "events"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    club_id: Mapped[str] = mapped_column(ForeignKey("clubs.id"), index=True)
    title: Mapped[str] = mapped_column(String)
    event_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class EventRegistration(Base):
    __tablename__ = "event_registrations"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    event_id: Mapped[str] = mapped_column(ForeignKey("events.id"), index=True)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    qr_code: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    checked_in_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    attended: Mapped[bool] = mapped_column(Boolean, default=False)
    registered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (UniqueConstraint("event_id", "user_id", name="uniq_registration_event_user"),)

    @property
    def check_in_state(self) -> CheckInState:
        if self.checked_in_at is None:
            return NotCheckedIn()
        return CheckedIn(at=self.checked_in_at)


class UserRole(Base):
    __tablename__ = "user_roles"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    role: Mapped[str] = mapped_column(String(20), default=AppRole.STUDENT.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (UniqueConstraint("user_id", "role", name="uniq_user_role"),)


class ClubRole(Base):
    __tablename__ = "club_roles"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    club_id: Mapped[str] = mapped_column(ForeignKey("clubs.id"), index=True)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    role: Mapped[str] = mapped_column(String(30), default=ClubRoleName.MEMBER.value)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    __table_args__ = (UniqueConstraint("club_id", "user_id", name="uniq_club_user_role"),)


class AuditLog(Base):
    __tablename__ = "check_in_audit_logs"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    decision_id: Mapped[str] = mapped_column(String, index=True)
    ip: Mapped[str] = mapped_column(String)
    user_agent: Mapped[str] = mapped_column(String)
    actor_id: Mapped[str] = mapped_column(String(36), index=True)
    registration_id: Mapped[Optional[str]] = mapped_column(String, index=True, nullable=True)
    status: Mapped[str] = mapped_column(String)
    reason_code: Mapped[str] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
