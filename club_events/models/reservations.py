import enum
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from club_events.database.db import Base
from club_events.models.events import Event, utcnow
from club_events.models.members import ClubMember


class ReservationPool(str, enum.Enum):
    CONFIRMED = "confirmed"
    WAITING = "waiting"


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (CheckConstraint("quantity > 0", name="ck_reservation_quantity_positive"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id"), nullable=False, index=True)
    member_id: Mapped[int] = mapped_column(ForeignKey("club_members.id"), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    pool: Mapped[str] = mapped_column(String(16), nullable=False, default=ReservationPool.WAITING.value)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    paid: Mapped[str | None] = mapped_column(String(64), nullable=True)
    # set in Python so rows created in one transaction still order by insertion
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    event: Mapped[Event] = relationship()
    member: Mapped[ClubMember] = relationship()

    @property
    def is_confirmed(self) -> bool:
        return self.pool == ReservationPool.CONFIRMED.value
