from sqlalchemy import select
from sqlalchemy.orm import Session

from club_events.models.members import ClubMember, MemberRole, MemberStatus


class MembershipAuthz:
    """Membership and role lookups over the club's member rows."""

    def __init__(self, db: Session):
        self.db = db

    def get_member(self, club_id: int, profile_id: int) -> ClubMember | None:
        stmt = select(ClubMember).where(
            ClubMember.club_id == club_id,
            ClubMember.profile_id == profile_id,
        )
        return self.db.scalar(stmt)

    def is_active_member(self, club_id: int, profile_id: int) -> bool:
        member = self.get_member(club_id, profile_id)
        return member is not None and member.status == MemberStatus.ACTIVE.value

    def is_club_admin(self, club_id: int, profile_id: int) -> bool:
        member = self.get_member(club_id, profile_id)
        return (
            member is not None
            and member.role == MemberRole.ADMIN.value
            and member.status == MemberStatus.ACTIVE.value
        )

    def admin_profile_ids(self, club_id: int) -> list[int]:
        stmt = select(ClubMember.profile_id).where(
            ClubMember.club_id == club_id,
            ClubMember.role == MemberRole.ADMIN.value,
            ClubMember.status == MemberStatus.ACTIVE.value,
        )
        return list(self.db.scalars(stmt))
