from datetime import datetime

from pydantic import BaseModel, Field

from club_events.models.reservations import ReservationPool
from club_events.schemas.events import EventOut


class ReserveRequest(BaseModel):
    event_id: int = Field(ge=1)
    profile_id: int = Field(ge=1)
    quantity: int = Field(ge=1)
    pool: ReservationPool = ReservationPool.CONFIRMED
    note: str | None = None


class ChangeQuantityRequest(BaseModel):
    profile_id: int = Field(ge=1)
    quantity: int = Field(ge=0)


class ChangeSlotsRequest(BaseModel):
    event_id: int = Field(ge=1)
    profile_id: int = Field(ge=1)
    pool: ReservationPool
    total: int = Field(ge=0)


class NoteRequest(BaseModel):
    profile_id: int = Field(ge=1)
    note: str | None = Field(default=None, max_length=2000)


class PaidRequest(BaseModel):
    profile_id: int = Field(ge=1)
    tag: str | None = Field(default=None, max_length=64)


class ReservationOut(BaseModel):
    id: int
    event_id: int
    member_id: int
    quantity: int
    pool: str
    note: str | None
    paid: str | None
    created_at: datetime

    class Config:
        from_attributes = True


class ReservationListOut(BaseModel):
    total_count: int
    has_more: bool
    results: list[ReservationOut]


class PromotionOut(BaseModel):
    reservation_id: int
    member_id: int
    amount: int
    split_from_id: int | None = None

    class Config:
        from_attributes = True


class MutationResponse(BaseModel):
    success: bool
    code: int
    message: str
    event: EventOut | None = None
    reservation: ReservationOut | None = None
    promotions: list[PromotionOut] = []

    class Config:
        from_attributes = True
