import logging
from dataclasses import dataclass
from typing import Sequence

from club_events.models.reservations import Reservation, ReservationPool
from club_events.services.ledger import ReservationLedger
from club_events.services.notifier import (
    NotificationEvent,
    NotificationKind,
    Notifier,
    notify_safely,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Promotion:
    """Quantity moved from the waiting pool into a confirmed reservation."""

    reservation_id: int
    member_id: int
    amount: int
    # id of the waiting reservation the amount was split off, None if promoted in place
    split_from_id: int | None = None


class CapacityAllocator:
    """
    Moves waiting quantity into the confirmed pool as capacity frees up, and
    shrinks a member's reservations when they give slots back.

    Callers validate authorization and capacity before calling in; the
    allocator only walks the ledger. Storage errors propagate.
    """

    def __init__(self, ledger: ReservationLedger, notifier: Notifier | None = None):
        self.ledger = ledger
        self.notifier = notifier

    def reconcile(
        self,
        available_slots: int,
        waiting: Sequence[Reservation],
        *,
        subject: str | None = None,
    ) -> list[Promotion]:
        """
        Promote waiting reservations, oldest first, into ``available_slots``.

        A reservation that fits is flipped to confirmed in place. The first one
        that does not fit is split: the free amount becomes a new confirmed
        reservation for the same member and the rest stays waiting. Later
        reservations are never promoted ahead of an earlier one.

        Each promotion is committed on its own, so a failure part way through
        leaves the earlier promotions in place.
        """
        promotions: list[Promotion] = []
        if available_slots <= 0:
            return promotions

        for reservation in waiting:
            if available_slots <= 0:
                break

            profile_id = reservation.member.profile_id
            if reservation.quantity <= available_slots:
                amount = reservation.quantity
                self.ledger.promote(reservation)
                promotion = Promotion(
                    reservation_id=reservation.id,
                    member_id=reservation.member_id,
                    amount=amount,
                )
            else:
                amount = available_slots
                self.ledger.set_quantity(reservation, reservation.quantity - amount)
                confirmed = self.ledger.create(
                    event_id=reservation.event_id,
                    member_id=reservation.member_id,
                    quantity=amount,
                    pool=ReservationPool.CONFIRMED,
                )
                promotion = Promotion(
                    reservation_id=confirmed.id,
                    member_id=confirmed.member_id,
                    amount=amount,
                    split_from_id=reservation.id,
                )
            self.ledger.commit()

            available_slots -= amount
            promotions.append(promotion)
            logger.info(
                "Promoted %s waiting slot(s) of reservation %s to confirmed reservation %s",
                amount,
                promotion.split_from_id or promotion.reservation_id,
                promotion.reservation_id,
            )
            notify_safely(
                self.notifier,
                [profile_id],
                NotificationEvent(
                    kind=NotificationKind.CONFIRM_WAITING_SLOT.value,
                    amount=amount,
                    subject=subject,
                ),
            )

        return promotions

    def reduce_slots(self, reservations: Sequence[Reservation], amount: int) -> int:
        """
        Remove ``amount`` slots from ``reservations``, given newest first.

        Rows fully consumed are deleted; the first row larger than what is
        left is shrunk and the walk stops. Returns the amount actually removed.
        The caller commits.
        """
        if amount <= 0:
            return 0

        remaining = amount
        for reservation in reservations:
            if remaining <= 0:
                break
            if reservation.quantity > remaining:
                self.ledger.set_quantity(reservation, reservation.quantity - remaining)
                remaining = 0
            else:
                remaining -= reservation.quantity
                self.ledger.delete(reservation)
        return amount - max(remaining, 0)
