import enum

from sqlalchemy import Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from club_events.database.db import Base


class MemberRole(str, enum.Enum):
    MEMBER = "member"
    ADMIN = "admin"


class MemberStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    BANNED = "banned"


class ClubMember(Base):
    """A profile's membership in one club. Owned by the club service, read-only here."""

    __tablename__ = "club_members"
    __table_args__ = (UniqueConstraint("club_id", "profile_id", name="uq_club_member_profile"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    club_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    profile_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default=MemberRole.MEMBER.value)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=MemberStatus.ACTIVE.value)
