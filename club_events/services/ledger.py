from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from club_events.models.reservations import Reservation, ReservationPool


class ReservationLedger:
    """
    Durable record of slot commitments against events.

    Every mutation is flushed right away so the next ``sum_quantity`` sees it.
    The ledger never checks capacity; that is the allocator's and the
    mutation service's job. ``commit`` ends the current unit of work.
    """

    def __init__(self, db: Session):
        self.db = db

    def get(self, reservation_id: int) -> Reservation | None:
        return self.db.get(Reservation, reservation_id, populate_existing=True)

    def create(
        self,
        *,
        event_id: int,
        member_id: int,
        quantity: int,
        pool: ReservationPool,
        note: str | None = None,
    ) -> Reservation:
        if quantity <= 0:
            raise ValueError("Reservation quantity must be positive.")

        reservation = Reservation(
            event_id=event_id,
            member_id=member_id,
            quantity=quantity,
            pool=ReservationPool(pool).value,
            note=note,
        )
        self.db.add(reservation)
        self.db.flush()  # gets reservation.id
        self.db.refresh(reservation)
        return reservation

    def set_quantity(self, reservation: Reservation, quantity: int) -> Reservation | None:
        """Set the quantity, deleting the row when it drops to zero or below."""
        if quantity <= 0:
            self.delete(reservation)
            return None
        reservation.quantity = quantity
        self.db.flush()
        return reservation

    def promote(self, reservation: Reservation) -> Reservation:
        reservation.pool = ReservationPool.CONFIRMED.value
        self.db.flush()
        return reservation

    def delete(self, reservation: Reservation) -> None:
        self.db.delete(reservation)
        self.db.flush()

    def delete_for_member(self, *, event_id: int, member_id: int, pool: ReservationPool) -> int:
        res = self.db.execute(
            delete(Reservation).where(
                Reservation.event_id == event_id,
                Reservation.member_id == member_id,
                Reservation.pool == ReservationPool(pool).value,
            )
        )
        self.db.flush()
        return int(res.rowcount or 0)  # type: ignore

    def delete_for_event(self, event_id: int) -> int:
        res = self.db.execute(delete(Reservation).where(Reservation.event_id == event_id))
        self.db.flush()
        return int(res.rowcount or 0)  # type: ignore

    def sum_quantity(
        self,
        event_id: int,
        pool: ReservationPool | None = None,
        *,
        member_id: int | None = None,
    ) -> int:
        stmt = select(func.sum(Reservation.quantity)).where(Reservation.event_id == event_id)
        if pool is not None:
            stmt = stmt.where(Reservation.pool == ReservationPool(pool).value)
        if member_id is not None:
            stmt = stmt.where(Reservation.member_id == member_id)
        return int(self.db.scalar(stmt) or 0)

    def waiting_queue(self, event_id: int) -> list[Reservation]:
        """Waiting reservations of an event, oldest first."""
        stmt = (
            select(Reservation)
            .where(
                Reservation.event_id == event_id,
                Reservation.pool == ReservationPool.WAITING.value,
            )
            .order_by(Reservation.created_at.asc(), Reservation.id.asc())
        )
        return list(self.db.scalars(stmt))

    def member_reservations(
        self,
        *,
        event_id: int,
        member_id: int,
        pool: ReservationPool | None = None,
    ) -> list[Reservation]:
        """A member's reservations in one event, newest first."""
        stmt = select(Reservation).where(
            Reservation.event_id == event_id,
            Reservation.member_id == member_id,
        )
        if pool is not None:
            stmt = stmt.where(Reservation.pool == ReservationPool(pool).value)
        stmt = stmt.order_by(Reservation.created_at.desc(), Reservation.id.desc())
        return list(self.db.scalars(stmt))

    def has_reservation(self, *, event_id: int, member_id: int) -> bool:
        stmt = select(Reservation.id).where(
            Reservation.event_id == event_id,
            Reservation.member_id == member_id,
        )
        return self.db.scalar(stmt.limit(1)) is not None

    def page(
        self,
        event_id: int,
        pool: ReservationPool,
        *,
        limit: int,
        offset: int,
    ) -> tuple[int, list[Reservation]]:
        """One page of an event's reservations in a pool, oldest first, with the total row count."""
        where = (
            Reservation.event_id == event_id,
            Reservation.pool == ReservationPool(pool).value,
        )
        total = self.db.scalar(select(func.count(Reservation.id)).where(*where))
        stmt = (
            select(Reservation)
            .where(*where)
            .order_by(Reservation.created_at.asc(), Reservation.id.asc())
            .offset(offset)
            .limit(limit)
        )
        return int(total or 0), list(self.db.scalars(stmt))

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
