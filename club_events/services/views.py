"""Read-side queries: counts computed from the reservation ledger on every call, and event listings."""

from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from club_events.core.config import DEFAULT_PAGE_LIMIT
from club_events.models.events import Event, EventStatus, utcnow
from club_events.models.members import ClubMember, MemberStatus
from club_events.models.reservations import Reservation, ReservationPool
from club_events.services.authz import MembershipAuthz
from club_events.services.ledger import ReservationLedger

# window for a member's current events
UPCOMING_LEAD = timedelta(minutes=5)
RECENT_GRACE = timedelta(minutes=60)


def confirmed_total(db: Session, event_id: int) -> int:
    return ReservationLedger(db).sum_quantity(event_id, ReservationPool.CONFIRMED)


def waiting_total(db: Session, event_id: int) -> int:
    return ReservationLedger(db).sum_quantity(event_id, ReservationPool.WAITING)


def get_event_stats(db: Session, event_id: int) -> dict:
    event = db.get(Event, event_id)
    if not event:
        return {}

    confirmed = confirmed_total(db, event_id)
    return {
        "event_id": event.id,
        "capacity": event.slot,
        "confirmed_count": confirmed,
        "waiting_count": waiting_total(db, event_id),
        "available": max(event.slot - confirmed, 0),
    }


def get_overall_report(db: Session, club_id: int | None = None) -> dict:
    """Return aggregated totals across all events, or across one club's events."""
    capacity_stmt = select(func.sum(Event.slot), func.count(Event.id))
    if club_id is not None:
        capacity_stmt = capacity_stmt.where(Event.club_id == club_id)
    total_capacity, total_events = db.execute(capacity_stmt).one()

    def pool_total(pool: ReservationPool) -> int:
        stmt = select(func.sum(Reservation.quantity)).where(Reservation.pool == pool.value)
        if club_id is not None:
            stmt = stmt.join(Event, Event.id == Reservation.event_id).where(Event.club_id == club_id)
        return int(db.scalar(stmt) or 0)

    return {
        "total_events": int(total_events or 0),
        "total_capacity": int(total_capacity or 0),
        "total_confirmed": pool_total(ReservationPool.CONFIRMED),
        "total_waiting": pool_total(ReservationPool.WAITING),
    }


def get_member_stats(db: Session, event_id: int, profile_id: int) -> dict | None:
    """A member's own confirmed and waiting totals. None unless they are an active member."""
    event = db.get(Event, event_id)
    if not event:
        return None

    authz = MembershipAuthz(db)
    if not authz.is_active_member(event.club_id, profile_id):
        return None
    member = authz.get_member(event.club_id, profile_id)

    ledger = ReservationLedger(db)
    confirmed = ledger.sum_quantity(event_id, ReservationPool.CONFIRMED, member_id=member.id)
    waiting = ledger.sum_quantity(event_id, ReservationPool.WAITING, member_id=member.id)
    return {
        "confirmed": confirmed,
        "waiting": waiting,
        "total": confirmed + waiting,
    }


def list_reservations(
    db: Session,
    event_id: int,
    pool: ReservationPool = ReservationPool.CONFIRMED,
    *,
    limit: int | None = None,
    offset: int | None = None,
) -> dict:
    real_limit = limit or DEFAULT_PAGE_LIMIT
    real_offset = offset or 0

    if not db.get(Event, event_id):
        return {"total_count": 0, "has_more": False, "results": []}

    total, results = ReservationLedger(db).page(event_id, pool, limit=real_limit, offset=real_offset)
    return {
        "total_count": total,
        "has_more": real_limit + real_offset < total,
        "results": results,
    }


def get_member_reservations(db: Session, event_id: int, profile_id: int) -> dict:
    """Every reservation a member holds in the event, newest first."""
    empty = {"total_count": 0, "has_more": False, "results": []}
    event = db.get(Event, event_id)
    if not event:
        return empty

    authz = MembershipAuthz(db)
    if not authz.is_active_member(event.club_id, profile_id):
        return empty
    member = authz.get_member(event.club_id, profile_id)

    results = ReservationLedger(db).member_reservations(event_id=event_id, member_id=member.id)
    return {"total_count": len(results), "has_more": False, "results": results}


def get_event(db: Session, event_id: int) -> Event | None:
    return db.get(Event, event_id)


def list_events(
    db: Session,
    club_id: int,
    *,
    limit: int | None = None,
    offset: int | None = None,
    starts_after: datetime | None = None,
    starts_before: datetime | None = None,
) -> dict:
    """A club's events by start time, optionally only those starting inside a window."""
    real_limit = limit or DEFAULT_PAGE_LIMIT
    real_offset = offset or 0

    where = [Event.club_id == club_id]
    if starts_after is not None:
        where.append(Event.start >= starts_after)
    if starts_before is not None:
        where.append(Event.start <= starts_before)

    total = int(db.scalar(select(func.count(Event.id)).where(*where)) or 0)
    stmt = (
        select(Event)
        .where(*where)
        .order_by(Event.start.asc(), Event.id.asc())
        .offset(real_offset)
        .limit(real_limit)
    )
    return {
        "total_count": total,
        "has_more": real_limit + real_offset < total,
        "results": list(db.scalars(stmt)),
    }


def list_member_events(
    db: Session,
    profile_id: int,
    *,
    confirmed_only: bool = False,
    now: datetime | None = None,
) -> dict:
    """
    Open events happening around now in every club the profile is an active
    member of: started at most five minutes from now and not ended more than
    an hour ago. With ``confirmed_only`` only events where the member holds
    confirmed slots are listed.
    """
    now = now or utcnow()
    memberships = select(ClubMember.club_id).where(
        ClubMember.profile_id == profile_id,
        ClubMember.status == MemberStatus.ACTIVE.value,
    )
    stmt = select(Event).where(
        Event.club_id.in_(memberships),
        Event.status == EventStatus.OPEN.value,
        Event.start < now + UPCOMING_LEAD,
        Event.end > now - RECENT_GRACE,
    )
    if confirmed_only:
        confirmed = (
            select(Reservation.event_id)
            .join(ClubMember, ClubMember.id == Reservation.member_id)
            .where(
                ClubMember.profile_id == profile_id,
                Reservation.pool == ReservationPool.CONFIRMED.value,
            )
        )
        stmt = stmt.where(Event.id.in_(confirmed))

    results = list(db.scalars(stmt.order_by(Event.start.asc(), Event.id.asc())))
    return {"total_count": len(results), "has_more": False, "results": results}


def get_member_vote_history(
    db: Session,
    profile_id: int,
    *,
    limit: int | None = None,
    offset: int | None = None,
) -> dict:
    """Confirmed reservations a profile holds across all clubs, newest first."""
    real_limit = limit or DEFAULT_PAGE_LIMIT
    real_offset = offset or 0

    where = (
        ClubMember.profile_id == profile_id,
        Reservation.pool == ReservationPool.CONFIRMED.value,
    )
    base = select(Reservation).join(ClubMember, ClubMember.id == Reservation.member_id).where(*where)
    total = int(db.scalar(select(func.count()).select_from(base.subquery())) or 0)
    stmt = (
        base.order_by(Reservation.created_at.desc(), Reservation.id.desc())
        .offset(real_offset)
        .limit(real_limit)
    )
    return {
        "total_count": total,
        "has_more": real_limit + real_offset < total,
        "results": list(db.scalars(stmt)),
    }
