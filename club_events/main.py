from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from club_events.core.logging_config import configure_logging
from club_events.database.db import Base, engine
from club_events.models import events, history, members, reservations  # noqa: F401
from club_events.routes import events as event_routes
from club_events.routes import reports as report_routes
from club_events.routes import reservations as reservation_routes
from club_events.services.errors import EventError

configure_logging()

app = FastAPI()

# Configure CORS
origins = [
    "*"
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Create all tables (in production, use migrations such as Alembic)
Base.metadata.create_all(bind=engine)


@app.exception_handler(EventError)
async def event_error_handler(request: Request, exc: EventError):
    return JSONResponse(
        status_code=exc.code,
        content={"success": False, "code": exc.code, "message": exc.message, "detail": exc.message},
    )


# Include the routers
app.include_router(event_routes.router)
app.include_router(reservation_routes.router)
app.include_router(report_routes.router)
