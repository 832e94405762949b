from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from club_events.database.db import get_db
from club_events.models.reservations import ReservationPool
from club_events.routes.deps import get_mutation_service
from club_events.schemas.events import (
    EventCreate,
    EventListOut,
    EventOut,
    EventSlotUpdate,
    EventStatsOut,
    EventStatusUpdate,
    EventUpdate,
    HistoryListOut,
    MemberStatsOut,
)
from club_events.schemas.reservations import MutationResponse, ReservationListOut
from club_events.services.history import list_event_history
from club_events.services.reservations import EventMutationService
from club_events.services.views import (
    get_event,
    get_event_stats,
    get_member_reservations,
    get_member_stats,
    list_events,
    list_member_events,
    list_reservations,
)

router = APIRouter(prefix="/event", tags=["events"])


@router.post("", response_model=MutationResponse)
def create_event(payload: EventCreate, service: EventMutationService = Depends(get_mutation_service)):
    result = service.create_event(
        payload.club_id,
        profile_id=payload.profile_id,
        title=payload.title,
        slot=payload.slot,
        max_vote=payload.max_vote,
        start=payload.start,
        end=payload.end,
        instant=payload.is_instant,
    )
    return MutationResponse.model_validate(result)


@router.get("", response_model=EventListOut)
def club_events(
    club_id: int = Query(ge=1),
    limit: int | None = Query(default=None, ge=1),
    offset: int | None = Query(default=None, ge=0),
    starts_after: datetime | None = None,
    starts_before: datetime | None = None,
    db: Session = Depends(get_db),
):
    return list_events(
        db,
        club_id,
        limit=limit,
        offset=offset,
        starts_after=starts_after,
        starts_before=starts_before,
    )


@router.get("/members/{profile_id}/current", response_model=EventListOut)
def member_current_events(profile_id: int, confirmed: bool = False, db: Session = Depends(get_db)):
    """Open events around now in the profile's clubs."""
    return list_member_events(db, profile_id, confirmed_only=confirmed)


@router.get("/{event_id}", response_model=EventOut)
def read_event(event_id: int, db: Session = Depends(get_db)):
    event = get_event(db, event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


@router.patch("/{event_id}", response_model=MutationResponse)
def update_event(
    event_id: int,
    payload: EventUpdate,
    service: EventMutationService = Depends(get_mutation_service),
):
    changes = payload.model_dump(exclude_unset=True, exclude={"profile_id"})
    result = service.update_event(event_id, profile_id=payload.profile_id, **changes)
    return MutationResponse.model_validate(result)


@router.patch("/{event_id}/slot", response_model=MutationResponse)
def resize_event(
    event_id: int,
    payload: EventSlotUpdate,
    service: EventMutationService = Depends(get_mutation_service),
):
    result = service.resize_event_capacity(event_id, profile_id=payload.profile_id, new_slot=payload.slot)
    return MutationResponse.model_validate(result)


@router.patch("/{event_id}/status", response_model=MutationResponse)
def change_event_status(
    event_id: int,
    payload: EventStatusUpdate,
    service: EventMutationService = Depends(get_mutation_service),
):
    result = service.change_event_status(event_id, profile_id=payload.profile_id, status=payload.status)
    return MutationResponse.model_validate(result)


@router.delete("/{event_id}", response_model=MutationResponse)
def delete_event(
    event_id: int,
    profile_id: int = Query(ge=1),
    service: EventMutationService = Depends(get_mutation_service),
):
    result = service.delete_event(event_id, profile_id=profile_id)
    return MutationResponse.model_validate(result)


@router.get("/{event_id}/stats", response_model=EventStatsOut)
def event_stats(event_id: int, db: Session = Depends(get_db)):
    stats = get_event_stats(db, event_id)
    if not stats:
        raise HTTPException(status_code=404, detail="Event not found")
    return stats


@router.get("/{event_id}/reservations", response_model=ReservationListOut)
def event_reservations(
    event_id: int,
    pool: ReservationPool = ReservationPool.CONFIRMED,
    limit: int | None = Query(default=None, ge=1),
    offset: int | None = Query(default=None, ge=0),
    db: Session = Depends(get_db),
):
    return list_reservations(db, event_id, pool, limit=limit, offset=offset)


@router.get("/{event_id}/history", response_model=HistoryListOut)
def event_history(
    event_id: int,
    limit: int | None = Query(default=None, ge=1),
    offset: int | None = Query(default=None, ge=0),
    db: Session = Depends(get_db),
):
    return list_event_history(db, event_id, limit=limit, offset=offset)


@router.get("/{event_id}/members/{profile_id}/stats", response_model=MemberStatsOut)
def member_stats(event_id: int, profile_id: int, db: Session = Depends(get_db)):
    stats = get_member_stats(db, event_id, profile_id)
    if stats is None:
        raise HTTPException(status_code=404, detail="Member stats not found")
    return stats


@router.get("/{event_id}/members/{profile_id}/reservations", response_model=ReservationListOut)
def member_reservations(event_id: int, profile_id: int, db: Session = Depends(get_db)):
    return get_member_reservations(db, event_id, profile_id)
