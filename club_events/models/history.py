import enum
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from club_events.database.db import Base
from club_events.models.events import utcnow
from club_events.models.members import ClubMember


class HistoryType(str, enum.Enum):
    DELETE_VOTE = "delete_vote"
    ADD_NOTE = "add_note"
    REMOVE_TAG = "remove_tag"


class EventHistory(Base):
    """Activity log entry for an event. ``type`` is a HistoryType value or a payment tag."""

    __tablename__ = "event_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id"), nullable=False, index=True)
    member_id: Mapped[int] = mapped_column(ForeignKey("club_members.id"), nullable=False)
    object_id: Mapped[int | None] = mapped_column(ForeignKey("club_members.id"), nullable=True)
    type: Mapped[str] = mapped_column(String(64), nullable=False)
    value: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    member: Mapped[ClubMember] = relationship(foreign_keys=[member_id])
