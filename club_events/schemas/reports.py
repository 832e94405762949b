from pydantic import BaseModel


class ReportOut(BaseModel):
    total_events: int
    total_capacity: int
    total_confirmed: int
    total_waiting: int
