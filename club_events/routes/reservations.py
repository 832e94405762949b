from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from club_events.database.db import get_db
from club_events.routes.deps import get_mutation_service
from club_events.schemas.reservations import (
    ChangeQuantityRequest,
    ChangeSlotsRequest,
    MutationResponse,
    NoteRequest,
    PaidRequest,
    ReservationListOut,
    ReserveRequest,
)
from club_events.services.reservations import EventMutationService
from club_events.services.views import get_member_vote_history

router = APIRouter(prefix="/reservation", tags=["reservations"])


@router.get("/members/{profile_id}/history", response_model=ReservationListOut)
def member_vote_history(
    profile_id: int,
    limit: int | None = Query(default=None, ge=1),
    offset: int | None = Query(default=None, ge=0),
    db: Session = Depends(get_db),
):
    """Confirmed reservations of a profile across clubs, newest first."""
    return get_member_vote_history(db, profile_id, limit=limit, offset=offset)


@router.post("", response_model=MutationResponse)
def reserve(payload: ReserveRequest, service: EventMutationService = Depends(get_mutation_service)):
    result = service.reserve(
        payload.event_id,
        profile_id=payload.profile_id,
        quantity=payload.quantity,
        pool=payload.pool,
        note=payload.note,
    )
    return MutationResponse.model_validate(result)


@router.put("/slots", response_model=MutationResponse)
def change_slots(payload: ChangeSlotsRequest, service: EventMutationService = Depends(get_mutation_service)):
    result = service.change_slots_for_member(
        payload.event_id,
        profile_id=payload.profile_id,
        pool=payload.pool,
        new_total=payload.total,
    )
    return MutationResponse.model_validate(result)


@router.delete("/{reservation_id}", response_model=MutationResponse)
def cancel(
    reservation_id: int,
    profile_id: int = Query(ge=1),
    service: EventMutationService = Depends(get_mutation_service),
):
    result = service.cancel(reservation_id, profile_id=profile_id)
    return MutationResponse.model_validate(result)


@router.patch("/{reservation_id}/quantity", response_model=MutationResponse)
def change_quantity(
    reservation_id: int,
    payload: ChangeQuantityRequest,
    service: EventMutationService = Depends(get_mutation_service),
):
    result = service.change_quantity(
        reservation_id,
        profile_id=payload.profile_id,
        new_quantity=payload.quantity,
    )
    return MutationResponse.model_validate(result)


@router.patch("/{reservation_id}/note", response_model=MutationResponse)
def set_note(
    reservation_id: int,
    payload: NoteRequest,
    service: EventMutationService = Depends(get_mutation_service),
):
    result = service.set_note(reservation_id, profile_id=payload.profile_id, note=payload.note)
    return MutationResponse.model_validate(result)


@router.patch("/{reservation_id}/paid", response_model=MutationResponse)
def set_paid(
    reservation_id: int,
    payload: PaidRequest,
    service: EventMutationService = Depends(get_mutation_service),
):
    result = service.set_paid(reservation_id, profile_id=payload.profile_id, tag=payload.tag)
    return MutationResponse.model_validate(result)
