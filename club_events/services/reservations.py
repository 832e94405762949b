"""
Event mutation service.

Every operation validates its preconditions first (event exists, voting
window, membership, per-member cap, capacity) and only then touches the
ledger. All ledger mutations on one event run under the event's Redis lock,
with the event row selected ``FOR UPDATE`` and the confirmed total re-read
right before any capacity check. Freed confirmed capacity is handed to the
allocator, and the new pool totals are broadcast afterwards.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from club_events.models.events import Event, EventStatus, utcnow
from club_events.models.history import HistoryType
from club_events.models.members import ClubMember, MemberStatus
from club_events.models.reservations import Reservation, ReservationPool
from club_events.services.allocator import CapacityAllocator, Promotion
from club_events.services.authz import MembershipAuthz
from club_events.services.errors import (
    AuthorizationError,
    EventError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from club_events.services.history import delete_event_history, record_history
from club_events.services.ledger import ReservationLedger
from club_events.services.locking import event_lock, get_redis_client
from club_events.services.notifier import (
    DeferredNotifier,
    LiveCountChannel,
    NotificationEvent,
    NotificationKind,
    Notifier,
    broadcast_safely,
    notify_safely,
)

logger = logging.getLogger(__name__)

# marks an update_event field the caller did not pass
_UNCHANGED = object()


@dataclass
class MutationResult:
    message: str
    event: Event | None = None
    reservation: Reservation | None = None
    promotions: list[Promotion] = field(default_factory=list)
    success: bool = True
    code: int = 200


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class EventMutationService:
    def __init__(
        self,
        db: Session,
        *,
        redis_client=None,
        notifier: Notifier | None = None,
        count_channel: LiveCountChannel | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.redis_client = redis_client if redis_client is not None else get_redis_client()
        self.notifier = notifier
        self.count_channel = count_channel
        self.clock = clock
        self.ledger = ReservationLedger(db)
        self.authz = MembershipAuthz(db)
        # sent once the event lock is released
        self.outbox = DeferredNotifier(notifier)
        self.allocator = CapacityAllocator(self.ledger, self.outbox)

    # ---------- reservations ----------

    def reserve(
        self,
        event_id: int,
        *,
        profile_id: int,
        quantity: int,
        pool: ReservationPool = ReservationPool.CONFIRMED,
        note: str | None = None,
    ) -> MutationResult:
        pool = ReservationPool(pool)
        if quantity <= 0:
            raise ValidationError("Quantity must be a positive number.")

        self._get_event(event_id)
        with self._mutating(event_id):
            event = self._lock_event(event_id)
            self._ensure_voting_open(event)
            member = self._require_active_member(event, profile_id)

            if self.ledger.has_reservation(event_id=event.id, member_id=member.id):
                raise ValidationError("You have already voted for this event.")
            self._ensure_within_max_vote(event, member, quantity)
            if pool is ReservationPool.CONFIRMED:
                self._ensure_capacity(event, quantity)

            reservation = self.ledger.create(
                event_id=event.id,
                member_id=member.id,
                quantity=quantity,
                pool=pool,
                note=note,
            )
            self.ledger.commit()
            logger.info(
                "Member %s reserved %s %s slot(s) in event %s",
                member.id,
                quantity,
                pool.value,
                event_id,
            )
            self._broadcast(event_id, pool)

        return MutationResult(message="Voted", event=event, reservation=reservation)

    def cancel(self, reservation_id: int, *, profile_id: int) -> MutationResult:
        event = self._get_event(self._get_reservation(reservation_id).event_id)

        with self._mutating(event.id):
            event = self._lock_event(event.id)
            reservation = self._get_reservation(reservation_id)
            actor = self._require_owner_or_admin(event, reservation, profile_id)
            is_self = actor.id == reservation.member_id
            if is_self:
                self._ensure_not_ended(event)

            was_confirmed = reservation.is_confirmed
            amount = reservation.quantity
            owner_id = reservation.member_id

            self.ledger.delete(reservation)
            if was_confirmed:
                record_history(
                    self.db,
                    event_id=event.id,
                    member_id=actor.id,
                    object_id=owner_id,
                    type=HistoryType.DELETE_VOTE.value,
                    value=amount,
                )
            self.ledger.commit()
            logger.info(
                "Reservation %s (%s x%s) cancelled by member %s",
                reservation_id,
                "confirmed" if was_confirmed else "waiting",
                amount,
                actor.id,
            )

            promotions: list[Promotion] = []
            if was_confirmed:
                if is_self:
                    self._notify_admins(event, actor_profile_id=profile_id, amount=amount)
                promotions = self._reconcile(event)
            self._broadcast_all(event.id)

        return MutationResult(message="Vote deleted.", event=event, promotions=promotions)

    def change_quantity(
        self,
        reservation_id: int,
        *,
        profile_id: int,
        new_quantity: int,
    ) -> MutationResult:
        if new_quantity < 0:
            raise ValidationError("Quantity can not be negative.")

        event = self._get_event(self._get_reservation(reservation_id).event_id)

        with self._mutating(event.id):
            event = self._lock_event(event.id)
            reservation = self._get_reservation(reservation_id)
            actor = self._require_owner_or_admin(event, reservation, profile_id)
            if new_quantity >= reservation.quantity:
                raise ValidationError("Can only change to lower slot.")

            freed = reservation.quantity - new_quantity
            was_confirmed = reservation.is_confirmed
            owner_id = reservation.member_id

            updated = self.ledger.set_quantity(reservation, new_quantity)
            if was_confirmed:
                record_history(
                    self.db,
                    event_id=event.id,
                    member_id=actor.id,
                    object_id=owner_id,
                    type=HistoryType.DELETE_VOTE.value,
                    value=freed,
                )
            self.ledger.commit()

            promotions = self._reconcile(event) if was_confirmed else []
            self._broadcast_all(event.id)

        return MutationResult(
            message="Vote is changed.",
            event=event,
            reservation=updated,
            promotions=promotions,
        )

    def change_slots_for_member(
        self,
        event_id: int,
        *,
        profile_id: int,
        pool: ReservationPool,
        new_total: int,
    ) -> MutationResult:
        """Move a member's total in one pool up or down to ``new_total``."""
        pool = ReservationPool(pool)
        if new_total < 0:
            raise ValidationError("Slot count can not be negative.")

        self._get_event(event_id)
        with self._mutating(event_id):
            event = self._lock_event(event_id)
            self._ensure_voting_open(event)
            member = self._require_active_member(event, profile_id)

            current = self.ledger.sum_quantity(event.id, pool, member_id=member.id)
            delta = new_total - current
            if delta == 0:
                self.ledger.commit()
                return MutationResult(message="Slot is unchanged", event=event)

            promotions: list[Promotion] = []
            reservation = None
            if delta > 0:
                self._ensure_within_max_vote(event, member, delta)
                if pool is ReservationPool.CONFIRMED:
                    self._ensure_capacity(event, delta)
                reservation = self.ledger.create(
                    event_id=event.id,
                    member_id=member.id,
                    quantity=delta,
                    pool=pool,
                )
                self.ledger.commit()
            else:
                removed = -delta
                if new_total == 0:
                    self.ledger.delete_for_member(event_id=event.id, member_id=member.id, pool=pool)
                else:
                    self.allocator.reduce_slots(
                        self.ledger.member_reservations(event_id=event.id, member_id=member.id, pool=pool),
                        removed,
                    )
                self.ledger.commit()

                if pool is ReservationPool.CONFIRMED:
                    self._notify_admins(event, actor_profile_id=profile_id, amount=removed)
                    promotions = self._reconcile(event)

            logger.info(
                "Member %s changed %s slots in event %s from %s to %s",
                member.id,
                pool.value,
                event_id,
                current,
                new_total,
            )
            self._broadcast_all(event.id)

        return MutationResult(
            message="Slot is changed",
            event=event,
            reservation=reservation,
            promotions=promotions,
        )

    def set_note(self, reservation_id: int, *, profile_id: int, note: str | None) -> MutationResult:
        reservation = self._get_reservation(reservation_id)
        event = self._get_event(reservation.event_id)
        actor = self._require_owner_or_admin(event, reservation, profile_id)

        with self._storage_errors():
            reservation.note = note
            record_history(
                self.db,
                event_id=event.id,
                member_id=actor.id,
                object_id=reservation.member_id,
                type=HistoryType.ADD_NOTE.value,
            )
            self.ledger.commit()

        return MutationResult(message="Note is changed!", event=event, reservation=reservation)

    def set_paid(self, reservation_id: int, *, profile_id: int, tag: str | None) -> MutationResult:
        reservation = self._get_reservation(reservation_id)
        event = self._get_event(reservation.event_id)
        actor = self._require_admin(event, profile_id)

        with self._storage_errors():
            reservation.paid = tag or None
            record_history(
                self.db,
                event_id=event.id,
                member_id=actor.id,
                object_id=reservation.member_id,
                type=tag or HistoryType.REMOVE_TAG.value,
            )
            self.ledger.commit()

        return MutationResult(message="Pay status is changed!", event=event, reservation=reservation)

    # ---------- events ----------

    def create_event(
        self,
        club_id: int,
        *,
        profile_id: int,
        title: str,
        slot: int,
        start: datetime,
        end: datetime,
        max_vote: int | None = None,
        instant: bool = True,
    ) -> MutationResult:
        if not self.authz.is_club_admin(club_id, profile_id):
            raise AuthorizationError("Unauthenticated")
        if slot < 0:
            raise ValidationError("Slots can not be negative.")
        if _as_utc(end) <= _as_utc(start):
            raise ValidationError("Event must end after it starts.")
        creator = self.authz.get_member(club_id, profile_id)

        with self._storage_errors():
            event = Event(
                club_id=club_id,
                title=title,
                slot=slot,
                max_vote=max_vote,
                start=start,
                end=end,
                status=EventStatus.OPEN.value if instant else EventStatus.DRAFT.value,
                created_by_id=creator.id,
            )
            self.db.add(event)
            self.ledger.commit()
            self.db.refresh(event)

        logger.info("Event %s created in club %s with %s slot(s)", event.id, club_id, slot)
        return MutationResult(message="Event created successfully", event=event)

    def update_event(
        self,
        event_id: int,
        *,
        profile_id: int,
        title: str | None = None,
        slot: int | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        max_vote: int | None | object = _UNCHANGED,
    ) -> MutationResult:
        """
        Edit an event. Fields left as None keep their value; ``max_vote=None``
        removes the per-member cap.

        A new ``slot`` below the confirmed total is rejected with nothing
        changed. Any freed capacity is handed to the waiting pool.
        """
        if slot is not None and slot < 0:
            raise ValidationError("Slots can not be negative.")
        if max_vote is not _UNCHANGED and max_vote is not None and max_vote < 1:
            raise ValidationError("Max votes must be at least 1.")

        self._get_event(event_id)
        with self._mutating(event_id):
            event = self._lock_event(event_id)
            self._require_admin(event, profile_id)

            new_start = start if start is not None else event.start
            new_end = end if end is not None else event.end
            if _as_utc(new_end) <= _as_utc(new_start):
                raise ValidationError("Event must end after it starts.")

            if slot is not None:
                confirmed = self.ledger.sum_quantity(event.id, ReservationPool.CONFIRMED)
                if slot < confirmed:
                    raise ValidationError("Slots can not be lower than the current confirmed slots")

            old_slot = event.slot
            if title is not None:
                event.title = title
            if slot is not None:
                event.slot = slot
            event.start = new_start
            event.end = new_end
            if max_vote is not _UNCHANGED:
                event.max_vote = max_vote
            self.ledger.commit()
            logger.info("Event %s updated, capacity %s -> %s", event_id, old_slot, event.slot)

            promotions = self._reconcile(event)
            self._broadcast_all(event.id)

        return MutationResult(message="Event updated successfully", event=event, promotions=promotions)

    def resize_event_capacity(self, event_id: int, *, profile_id: int, new_slot: int) -> MutationResult:
        return self.update_event(event_id, profile_id=profile_id, slot=new_slot)

    def change_event_status(self, event_id: int, *, profile_id: int, status: EventStatus) -> MutationResult:
        status = EventStatus(status)
        self._get_event(event_id)
        with self._mutating(event_id):
            event = self._lock_event(event_id)
            self._require_admin(event, profile_id)
            event.status = status.value
            self.ledger.commit()

        return MutationResult(message="Event status has changed successfully", event=event)

    def delete_event(self, event_id: int, *, profile_id: int) -> MutationResult:
        self._get_event(event_id)
        with self._mutating(event_id):
            event = self._lock_event(event_id)
            self._require_admin(event, profile_id)

            removed = self.ledger.delete_for_event(event.id)
            delete_event_history(self.db, event.id)
            self.db.delete(event)
            self.ledger.commit()
            logger.info("Event %s deleted with %s reservation(s)", event_id, removed)
            self._broadcast_all(event_id)

        return MutationResult(message="Event deleted successfully")

    # ---------- helpers ----------

    @contextmanager
    def _storage_errors(self):
        try:
            yield
        except EventError:
            self.ledger.rollback()
            raise
        except SQLAlchemyError as e:
            self.ledger.rollback()
            logger.exception("Storage error during event mutation")
            raise StorageError(f"Internal server error {e}") from e

    @contextmanager
    def _mutating(self, event_id: int):
        try:
            with event_lock(self.redis_client, event_id):
                with self._storage_errors():
                    yield
        finally:
            # only committed work queues notifications, so flush even on error
            self.outbox.flush()

    def _get_event(self, event_id: int) -> Event:
        event = self.db.get(Event, event_id)
        if not event:
            raise NotFoundError("Event not found")
        return event

    def _lock_event(self, event_id: int) -> Event:
        stmt = (
            select(Event)
            .where(Event.id == event_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        event = self.db.scalar(stmt)
        if not event:
            raise NotFoundError("Event not found")
        return event

    def _get_reservation(self, reservation_id: int) -> Reservation:
        reservation = self.ledger.get(reservation_id)
        if not reservation:
            raise NotFoundError("Vote not found.")
        return reservation

    def _ensure_voting_open(self, event: Event) -> None:
        if event.status != EventStatus.OPEN.value:
            raise ValidationError("Event voting is closed.")
        now = self.clock()
        if now < _as_utc(event.start):
            raise ValidationError("Event voting has not started yet.")
        if now >= _as_utc(event.end):
            raise ValidationError("Event voting is closed.")

    def _ensure_not_ended(self, event: Event) -> None:
        if self.clock() >= _as_utc(event.end):
            raise ValidationError("Event voting is closed.")

    def _require_active_member(self, event: Event, profile_id: int) -> ClubMember:
        member = self.authz.get_member(event.club_id, profile_id)
        if not member or member.status != MemberStatus.ACTIVE.value:
            raise AuthorizationError("You do not have permission to vote.")
        return member

    def _require_admin(self, event: Event, profile_id: int) -> ClubMember:
        if not self.authz.is_club_admin(event.club_id, profile_id):
            raise AuthorizationError("Unauthorized")
        return self.authz.get_member(event.club_id, profile_id)

    def _require_owner_or_admin(self, event: Event, reservation: Reservation, profile_id: int) -> ClubMember:
        member = self.authz.get_member(event.club_id, profile_id)
        if member is None:
            raise AuthorizationError("Unauthorized")
        if member.id == reservation.member_id or self.authz.is_club_admin(event.club_id, profile_id):
            return member
        raise AuthorizationError("Unauthorized")

    def _ensure_within_max_vote(self, event: Event, member: ClubMember, quantity: int) -> None:
        if event.max_vote is None:
            return
        held = self.ledger.sum_quantity(event.id, member_id=member.id)
        if held + quantity > event.max_vote:
            raise ValidationError("You have reached your permitted votes.")

    def _ensure_capacity(self, event: Event, quantity: int) -> None:
        confirmed = self.ledger.sum_quantity(event.id, ReservationPool.CONFIRMED)
        if confirmed + quantity > event.slot:
            raise ValidationError("Slot is full")

    def _reconcile(self, event: Event) -> list[Promotion]:
        available = event.slot - self.ledger.sum_quantity(event.id, ReservationPool.CONFIRMED)
        if available <= 0:
            return []
        return self.allocator.reconcile(available, self.ledger.waiting_queue(event.id), subject=event.title)

    def _notify_admins(self, event: Event, *, actor_profile_id: int, amount: int) -> None:
        admins = [pid for pid in self.authz.admin_profile_ids(event.club_id) if pid != actor_profile_id]
        notify_safely(
            self.outbox,
            admins,
            NotificationEvent(
                kind=NotificationKind.REMOVE_CONFIRM_VOTE.value,
                amount=amount,
                subject=event.title,
                actor_profile_id=actor_profile_id,
            ),
        )

    def _broadcast(self, event_id: int, pool: ReservationPool) -> None:
        broadcast_safely(self.count_channel, event_id, pool, self.ledger.sum_quantity(event_id, pool))

    def _broadcast_all(self, event_id: int) -> None:
        self._broadcast(event_id, ReservationPool.CONFIRMED)
        self._broadcast(event_id, ReservationPool.WAITING)
