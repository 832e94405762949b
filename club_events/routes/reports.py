from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from club_events.database.db import get_db
from club_events.schemas.reports import ReportOut
from club_events.services.views import get_overall_report

router = APIRouter(prefix="/report", tags=["reports"])


@router.get("", response_model=ReportOut)
def overall_report(club_id: int | None = Query(default=None, ge=1), db: Session = Depends(get_db)):
    """Aggregate report across all events, or one club's events."""
    return get_overall_report(db, club_id)
