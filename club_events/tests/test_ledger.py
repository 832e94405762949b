"""
Test the reservation ledger, membership lookups and read-side views.
"""
from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from club_events.models.events import EventStatus
from club_events.models.members import MemberRole, MemberStatus
from club_events.models.reservations import ReservationPool
from club_events.services.authz import MembershipAuthz
from club_events.services.ledger import ReservationLedger
from club_events.services.views import (
    get_event,
    get_event_stats,
    get_member_stats,
    get_member_vote_history,
    get_overall_report,
    list_events,
    list_member_events,
    list_reservations,
)

CONFIRMED = ReservationPool.CONFIRMED
WAITING = ReservationPool.WAITING


@pytest.fixture
def ledger(db_session: Session):
    return ReservationLedger(db_session)


class TestReservationLedger:
    """Test ledger reads and writes."""

    def test_create_rejects_non_positive_quantity(self, ledger, make_event, make_member):
        event = make_event()
        member = make_member(1)

        with pytest.raises(ValueError):
            ledger.create(event_id=event.id, member_id=member.id, quantity=0, pool=CONFIRMED)

    def test_sum_quantity_by_pool_and_member(self, ledger, make_event, make_member, make_reservation):
        event = make_event()
        other_event = make_event()
        a = make_member(1)
        b = make_member(2)
        make_reservation(event, a, 2)
        make_reservation(event, a, 1, WAITING)
        make_reservation(event, b, 4)
        make_reservation(other_event, a, 9)

        assert ledger.sum_quantity(event.id, CONFIRMED) == 6
        assert ledger.sum_quantity(event.id, WAITING) == 1
        assert ledger.sum_quantity(event.id) == 7
        assert ledger.sum_quantity(event.id, member_id=a.id) == 3
        assert ledger.sum_quantity(event.id, CONFIRMED, member_id=b.id) == 4

    def test_sum_quantity_of_empty_event(self, ledger, make_event):
        assert ledger.sum_quantity(make_event().id, CONFIRMED) == 0

    def test_set_quantity_to_zero_deletes(self, ledger, make_event, make_member, make_reservation):
        event = make_event()
        reservation = make_reservation(event, make_member(1), 2)
        reservation_id = reservation.id

        assert ledger.set_quantity(reservation, 0) is None
        ledger.commit()

        assert ledger.get(reservation_id) is None

    def test_waiting_queue_is_fifo_with_id_tiebreak(self, ledger, make_event, make_member, make_reservation):
        event = make_event()
        late = make_reservation(event, make_member(1), 1, WAITING, minutes_ago=1)
        early = make_reservation(event, make_member(2), 1, WAITING, minutes_ago=9)
        make_reservation(event, make_member(3), 1, CONFIRMED, minutes_ago=20)

        assert [r.id for r in ledger.waiting_queue(event.id)] == [early.id, late.id]

    def test_delete_for_member_only_touches_one_pool(self, ledger, make_event, make_member, make_reservation):
        event = make_event()
        member = make_member(1)
        make_reservation(event, member, 2)
        make_reservation(event, member, 3)
        kept = make_reservation(event, member, 1, WAITING)

        assert ledger.delete_for_member(event_id=event.id, member_id=member.id, pool=CONFIRMED) == 2
        ledger.commit()

        assert [r.id for r in ledger.member_reservations(event_id=event.id, member_id=member.id)] == [kept.id]

    def test_has_reservation(self, ledger, make_event, make_member, make_reservation):
        event = make_event()
        member = make_member(1)
        assert ledger.has_reservation(event_id=event.id, member_id=member.id) is False

        make_reservation(event, member, 1, WAITING)

        assert ledger.has_reservation(event_id=event.id, member_id=member.id) is True


class TestMembershipAuthz:
    def test_roles_and_status(self, db_session: Session, make_member):
        make_member(1)
        make_member(2, role=MemberRole.ADMIN)
        make_member(3, role=MemberRole.ADMIN, status=MemberStatus.BANNED)
        make_member(4, status=MemberStatus.PENDING)
        authz = MembershipAuthz(db_session)

        assert authz.is_active_member(1, 1) is True
        assert authz.is_active_member(1, 4) is False
        assert authz.is_active_member(2, 1) is False
        assert authz.is_club_admin(1, 2) is True
        assert authz.is_club_admin(1, 3) is False
        assert authz.is_club_admin(1, 1) is False
        assert authz.admin_profile_ids(1) == [2]


class TestViews:
    """Test read-side counts."""

    def test_event_stats_for_unknown_event(self, db_session: Session):
        assert get_event_stats(db_session, 404) == {}

    def test_event_stats_available_never_negative(self, db_session: Session, make_event, make_member, make_reservation):
        event = make_event(slot=3)
        make_reservation(event, make_member(1), 3)

        stats = get_event_stats(db_session, event.id)

        assert stats["available"] == 0
        assert stats["confirmed_count"] == 3

    def test_member_stats_requires_active_membership(self, db_session: Session, make_event, make_member, make_reservation):
        event = make_event()
        make_reservation(event, make_member(1), 2)
        make_member(2, status=MemberStatus.BANNED)

        assert get_member_stats(db_session, event.id, 1) == {"confirmed": 2, "waiting": 0, "total": 2}
        assert get_member_stats(db_session, event.id, 2) is None
        assert get_member_stats(db_session, event.id, 3) is None

    def test_list_reservations_defaults(self, db_session: Session, make_event, make_member, make_reservation):
        event = make_event()
        for profile_id in range(1, 4):
            make_reservation(event, make_member(profile_id), 1)

        page = list_reservations(db_session, event.id)

        assert page["total_count"] == 3
        assert page["has_more"] is False
        assert len(page["results"]) == 3

    def test_list_reservations_for_unknown_event(self, db_session: Session):
        assert list_reservations(db_session, 404, WAITING) == {"total_count": 0, "has_more": False, "results": []}

    def test_overall_report(self, db_session: Session, make_event, make_member, make_reservation):
        first = make_event(slot=10)
        second = make_event(slot=5)
        member = make_member(1)
        make_reservation(first, member, 4)
        make_reservation(second, member, 2, WAITING)

        assert get_overall_report(db_session) == {
            "total_events": 2,
            "total_capacity": 15,
            "total_confirmed": 4,
            "total_waiting": 2,
        }

    def test_overall_report_for_one_club(self, db_session: Session, make_event, make_member, make_reservation):
        ours = make_event(slot=10)
        theirs = make_event(slot=7, club_id=2)
        make_reservation(ours, make_member(1), 4)
        make_reservation(theirs, make_member(1, club_id=2), 3)

        assert get_overall_report(db_session, club_id=2) == {
            "total_events": 1,
            "total_capacity": 7,
            "total_confirmed": 3,
            "total_waiting": 0,
        }
        assert get_overall_report(db_session, club_id=9)["total_events"] == 0


class TestEventListings:
    """Test event reads and listings."""

    def test_get_event(self, db_session: Session, make_event):
        event = make_event(title="Friday Futsal")

        assert get_event(db_session, event.id).title == "Friday Futsal"
        assert get_event(db_session, 404) is None

    def test_list_events_by_start_with_pagination(self, db_session: Session, make_event, now):
        late = make_event(start=now + timedelta(days=2), end=now + timedelta(days=2, hours=2))
        early = make_event(start=now + timedelta(days=1), end=now + timedelta(days=1, hours=2))
        make_event(club_id=2)

        first_page = list_events(db_session, 1, limit=1)
        second_page = list_events(db_session, 1, limit=1, offset=1)

        assert first_page["total_count"] == 2
        assert first_page["has_more"] is True
        assert [e.id for e in first_page["results"]] == [early.id]
        assert second_page["has_more"] is False
        assert [e.id for e in second_page["results"]] == [late.id]

    def test_list_events_inside_window(self, db_session: Session, make_event, now):
        make_event(start=now - timedelta(days=3), end=now - timedelta(days=3) + timedelta(hours=2))
        tomorrow = make_event(start=now + timedelta(days=1), end=now + timedelta(days=1, hours=2))
        make_event(start=now + timedelta(days=10), end=now + timedelta(days=10, hours=2))

        page = list_events(db_session, 1, starts_after=now, starts_before=now + timedelta(days=5))

        assert page["total_count"] == 1
        assert [e.id for e in page["results"]] == [tomorrow.id]

    def test_member_events_only_in_active_clubs(self, db_session: Session, make_event, make_member, now):
        make_member(1)
        make_member(1, club_id=2, status=MemberStatus.PENDING)
        ours = make_event()
        make_event(club_id=2)

        page = list_member_events(db_session, 1, now=now)

        assert [e.id for e in page["results"]] == [ours.id]
        assert list_member_events(db_session, 5, now=now)["total_count"] == 0

    def test_member_events_window_and_status(self, db_session: Session, make_event, make_member, now):
        make_member(1)
        starting_soon = make_event(start=now + timedelta(minutes=3), end=now + timedelta(hours=2))
        just_ended = make_event(start=now - timedelta(hours=2), end=now - timedelta(minutes=30))
        make_event(start=now + timedelta(hours=1), end=now + timedelta(hours=3))
        make_event(start=now - timedelta(hours=4), end=now - timedelta(hours=2))
        make_event(status=EventStatus.DRAFT)

        page = list_member_events(db_session, 1, now=now)

        assert {e.id for e in page["results"]} == {starting_soon.id, just_ended.id}

    def test_member_events_confirmed_only(self, db_session: Session, make_event, make_member, make_reservation, now):
        member = make_member(1)
        confirmed = make_event()
        waiting = make_event()
        make_event()
        make_reservation(confirmed, member, 1)
        make_reservation(waiting, member, 1, WAITING)

        page = list_member_events(db_session, 1, confirmed_only=True, now=now)

        assert [e.id for e in page["results"]] == [confirmed.id]
        assert list_member_events(db_session, 1, now=now)["total_count"] == 3

    def test_vote_history_across_clubs_newest_first(self, db_session: Session, make_event, make_member, make_reservation):
        home = make_member(1)
        away = make_member(1, club_id=2)
        older = make_reservation(make_event(), home, 2, minutes_ago=30)
        newer = make_reservation(make_event(club_id=2), away, 1, minutes_ago=5)
        make_reservation(make_event(), home, 4, WAITING)
        make_reservation(make_event(), make_member(2), 3)

        page = get_member_vote_history(db_session, 1)

        assert page["total_count"] == 2
        assert page["has_more"] is False
        assert [r.id for r in page["results"]] == [newer.id, older.id]

    def test_vote_history_pagination(self, db_session: Session, make_event, make_member, make_reservation):
        member = make_member(1)
        for minutes_ago in (1, 2, 3):
            make_reservation(make_event(), member, 1, minutes_ago=minutes_ago)

        page = get_member_vote_history(db_session, 1, limit=2)

        assert page["total_count"] == 3
        assert page["has_more"] is True
        assert len(page["results"]) == 2
