from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from club_events.core.config import DEFAULT_PAGE_LIMIT
from club_events.models.history import EventHistory


def record_history(
    db: Session,
    *,
    event_id: int,
    member_id: int,
    type: str,
    object_id: int | None = None,
    value: int | None = None,
) -> EventHistory:
    entry = EventHistory(
        event_id=event_id,
        member_id=member_id,
        object_id=object_id,
        type=type,
        value=value,
    )
    db.add(entry)
    db.flush()
    return entry


def delete_event_history(db: Session, event_id: int) -> None:
    db.execute(delete(EventHistory).where(EventHistory.event_id == event_id))
    db.flush()


def list_event_history(
    db: Session,
    event_id: int,
    *,
    limit: int | None = None,
    offset: int | None = None,
) -> dict:
    real_limit = limit or DEFAULT_PAGE_LIMIT
    real_offset = offset or 0

    total = db.scalar(select(func.count(EventHistory.id)).where(EventHistory.event_id == event_id))
    stmt = (
        select(EventHistory)
        .where(EventHistory.event_id == event_id)
        .order_by(EventHistory.created_at.desc(), EventHistory.id.desc())
        .offset(real_offset)
        .limit(real_limit)
    )
    return {
        "total_count": int(total or 0),
        "results": list(db.scalars(stmt)),
    }
