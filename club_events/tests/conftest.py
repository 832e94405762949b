import os

# keep the application engine off disk; tests use their own engine below
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timedelta, timezone

import fakeredis
import pytest
import redis
from fastapi.testclient import TestClient
from redis.backoff import NoBackoff
from redis.retry import Retry
from sqlalchemy import Engine, StaticPool, create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.session import Session

from club_events.database.db import Base, get_db
from club_events.main import app
from club_events.models.events import Event, EventStatus
from club_events.models.members import ClubMember, MemberRole, MemberStatus
from club_events.models.reservations import Reservation, ReservationPool
from club_events.routes.deps import get_notifier, get_redis
from club_events.services.reservations import EventMutationService
from club_events.tests.fakes import RecordingChannel, RecordingNotifier

# Use an in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
engine: Engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

CLUB_ID = 1


@pytest.fixture(autouse=True)
def setup_database():
    """Fresh schema for every test."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory():
    return TestingSessionLocal


@pytest.fixture
def db_session():
    db: Session = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def fake_redis():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def dead_redis():
    """A real client pointed at a port nothing listens on, without retries."""
    return redis.Redis(host="127.0.0.1", port=1, socket_connect_timeout=1, retry=Retry(NoBackoff(), 0))


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def now():
    return datetime.now(timezone.utc)


@pytest.fixture
def service(db_session: Session, fake_redis, notifier, channel):
    return EventMutationService(
        db_session,
        redis_client=fake_redis,
        notifier=notifier,
        count_channel=channel,
    )


# Override the database dependency
def override_get_db():
    db: Session = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(fake_redis, notifier):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = lambda: fake_redis
    app.dependency_overrides[get_notifier] = lambda: notifier
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_member(db_session: Session):
    def _make_member(
        profile_id: int,
        *,
        club_id: int = CLUB_ID,
        role: MemberRole = MemberRole.MEMBER,
        status: MemberStatus = MemberStatus.ACTIVE,
    ) -> ClubMember:
        member = ClubMember(
            club_id=club_id,
            profile_id=profile_id,
            role=role.value,
            status=status.value,
        )
        db_session.add(member)
        db_session.commit()
        db_session.refresh(member)
        return member

    return _make_member


@pytest.fixture
def admin(make_member) -> ClubMember:
    return make_member(100, role=MemberRole.ADMIN)


@pytest.fixture
def make_event(db_session: Session, now):
    def _make_event(
        *,
        slot: int = 10,
        max_vote: int | None = None,
        status: EventStatus = EventStatus.OPEN,
        start: datetime | None = None,
        end: datetime | None = None,
        club_id: int = CLUB_ID,
        title: str = "Sunday Match",
    ) -> Event:
        event = Event(
            club_id=club_id,
            title=title,
            slot=slot,
            max_vote=max_vote,
            start=start or now - timedelta(hours=1),
            end=end or now + timedelta(hours=1),
            status=status.value,
        )
        db_session.add(event)
        db_session.commit()
        db_session.refresh(event)
        return event

    return _make_event


@pytest.fixture
def make_reservation(db_session: Session, now):
    def _make_reservation(
        event: Event,
        member: ClubMember,
        quantity: int,
        pool: ReservationPool = ReservationPool.CONFIRMED,
        *,
        minutes_ago: int = 0,
    ) -> Reservation:
        reservation = Reservation(
            event_id=event.id,
            member_id=member.id,
            quantity=quantity,
            pool=pool.value,
            created_at=now - timedelta(minutes=minutes_ago),
        )
        db_session.add(reservation)
        db_session.commit()
        db_session.refresh(reservation)
        return reservation

    return _make_reservation
