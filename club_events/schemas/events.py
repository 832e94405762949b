from datetime import datetime

from pydantic import BaseModel, Field

from club_events.models.events import EventStatus


# ---------- Event ----------
class EventCreate(BaseModel):
    club_id: int = Field(ge=1)
    profile_id: int = Field(ge=1)
    title: str = Field(min_length=1, max_length=200)
    slot: int = Field(ge=0)
    max_vote: int | None = Field(default=None, ge=1)
    start: datetime
    end: datetime
    is_instant: bool = True


class EventUpdate(BaseModel):
    profile_id: int = Field(ge=1)
    title: str | None = Field(default=None, min_length=1, max_length=200)
    slot: int | None = Field(default=None, ge=0)
    max_vote: int | None = Field(default=None, ge=1)
    start: datetime | None = None
    end: datetime | None = None


class EventSlotUpdate(BaseModel):
    profile_id: int = Field(ge=1)
    slot: int = Field(ge=0)


class EventStatusUpdate(BaseModel):
    profile_id: int = Field(ge=1)
    status: EventStatus


class EventOut(BaseModel):
    id: int
    club_id: int
    title: str
    slot: int
    max_vote: int | None
    start: datetime
    end: datetime
    status: str

    class Config:
        from_attributes = True


class EventStatsOut(BaseModel):
    event_id: int
    capacity: int
    confirmed_count: int
    waiting_count: int
    available: int


class MemberStatsOut(BaseModel):
    confirmed: int
    waiting: int
    total: int


class HistoryOut(BaseModel):
    id: int
    event_id: int
    member_id: int
    object_id: int | None
    type: str
    value: int | None
    created_at: datetime

    class Config:
        from_attributes = True


class HistoryListOut(BaseModel):
    total_count: int
    results: list[HistoryOut]


class EventListOut(BaseModel):
    total_count: int
    has_more: bool
    results: list[EventOut]
