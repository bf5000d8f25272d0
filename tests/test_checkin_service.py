from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from reportthereef_api import models
from reportthereef_api.catalog import Anchorage, AnchorageCatalog
from reportthereef_api.checkins import CheckinService, CustomLocation, Selection
from reportthereef_api.config import ResolverConfig
from reportthereef_api.errors import InvalidInput, NotFound, OutsideServiceRegion, StoreFailure
from reportthereef_api.models import Base
from reportthereef_api.resolver import AnchorageResolver


A = Anchorage(id='A', name='The Bight', island='Norman Island', lat=18.3200, lng=-64.6200)
B = Anchorage(id='B', name='Great Harbour', island='Jost Van Dyke', lat=18.4428, lng=-64.7536)
CATALOG = AnchorageCatalog([A, B])


class Clock:
    def __init__(self):
        self.now = datetime.now(timezone.utc).replace(microsecond=0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def naive(dt: datetime) -> datetime:
    return dt.replace(tzinfo=None)


@pytest.fixture
def db():
    engine = create_engine(
        'sqlite+pysqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def clock():
    return Clock()


def make_service(db, clock, **config) -> CheckinService:
    resolver = AnchorageResolver(CATALOG, ResolverConfig(auto_checkin_radius_km=0.93, **config))
    return CheckinService(db, resolver, clock=clock)


@pytest.fixture
def service(db, clock):
    return make_service(db, clock)


def active_for(db, user_id):
    return (
        db.query(models.Checkin)
        .filter(models.Checkin.user_id == user_id, models.Checkin.is_active.is_(True))
        .all()
    )


def test_create_checkin_at_anchorage(service, clock):
    ci = service.create_checkin('user1', 18.3201, -64.6199, Selection(anchorage_id='A'), note='testing', visibility='public')
    assert ci.location_name == 'The Bight, Norman Island'
    assert ci.anchorage_id == 'A'
    assert ci.is_custom_location is False
    assert (ci.location_lat, ci.location_lng) == (A.lat, A.lng)
    assert (ci.actual_gps_lat, ci.actual_gps_lng) == (18.3201, -64.6199)
    assert ci.note == 'testing'
    assert ci.is_active is True
    assert ci.expires_at - ci.checked_in_at == timedelta(hours=8)
    assert naive(ci.checked_in_at) == naive(clock.now)
    assert naive(ci.last_verified_at) == naive(clock.now)


def test_create_checkin_at_custom_location(service):
    ci = service.create_checkin(
        'user1', 18.1, -64.1, Selection(custom_location=CustomLocation(name='Reef Spot', lat=18.1, lng=-64.1))
    )
    assert ci.anchorage_id is None
    assert ci.is_custom_location is True
    assert ci.location_name == 'Reef Spot'
    assert (ci.location_lat, ci.location_lng) == (18.1, -64.1)


def test_second_checkin_supersedes_first(db, service):
    first = service.create_checkin('user1', A.lat, A.lng, Selection(anchorage_id='A'))
    second = service.create_checkin('user1', B.lat, B.lng, Selection(anchorage_id='B'))
    active = active_for(db, 'user1')
    assert [c.id for c in active] == [second.id]
    db.refresh(first)
    assert first.is_active is False


def test_checkins_of_other_users_are_untouched(db, service):
    service.create_checkin('user1', A.lat, A.lng, Selection(anchorage_id='A'))
    service.create_checkin('user2', A.lat, A.lng, Selection(anchorage_id='A'))
    assert len(active_for(db, 'user1')) == 1
    assert len(active_for(db, 'user2')) == 1


def test_unknown_anchorage_leaves_previous_checkin_active(db, service):
    first = service.create_checkin('user1', A.lat, A.lng, Selection(anchorage_id='A'))
    with pytest.raises(NotFound):
        service.create_checkin('user1', A.lat, A.lng, Selection(anchorage_id='atlantis'))
    assert [c.id for c in active_for(db, 'user1')] == [first.id]


@pytest.mark.parametrize('custom', [
    CustomLocation(name='', lat=18.1, lng=-64.1),
    CustomLocation(name='   ', lat=18.1, lng=-64.1),
    CustomLocation(name=None, lat=18.1, lng=-64.1),
    CustomLocation(name='Reef Spot', lat=None, lng=-64.1),
    CustomLocation(name='Reef Spot', lat=18.1, lng=float('nan')),
])
def test_incomplete_custom_location_is_rejected(db, service, custom):
    with pytest.raises(InvalidInput):
        service.create_checkin('user1', 18.1, -64.1, Selection(custom_location=custom))
    assert active_for(db, 'user1') == []


def test_selection_must_name_exactly_one_location(service):
    with pytest.raises(InvalidInput):
        service.create_checkin('user1', A.lat, A.lng, Selection())
    both = Selection(anchorage_id='A', custom_location=CustomLocation(name='Reef Spot', lat=18.1, lng=-64.1))
    with pytest.raises(InvalidInput):
        service.create_checkin('user1', A.lat, A.lng, both)


def test_invalid_visibility_is_rejected(service):
    with pytest.raises(InvalidInput):
        service.create_checkin('user1', A.lat, A.lng, Selection(anchorage_id='A'), visibility='everyone')


def test_friends_visibility_is_stored(service):
    ci = service.create_checkin('user1', A.lat, A.lng, Selection(anchorage_id='A'), visibility='friends')
    assert ci.visibility == 'friends'


@pytest.mark.parametrize('lat,lng', [(float('nan'), -64.6), (18.3, None), ('18.3', -64.6)])
def test_malformed_gps_is_rejected(service, lat, lng):
    with pytest.raises(InvalidInput):
        service.create_checkin('user1', lat, lng, Selection(anchorage_id='A'))


def test_create_outside_region_rejected_when_restricted(db, clock):
    service = make_service(db, clock, region_restriction_enabled=True)
    with pytest.raises(OutsideServiceRegion):
        service.create_checkin('user1', 40.7, -74.0, Selection(anchorage_id='A'))


def test_create_outside_region_allowed_when_unrestricted(service):
    ci = service.create_checkin('user1', 40.7, -74.0, Selection(anchorage_id='A'))
    assert (ci.actual_gps_lat, ci.actual_gps_lng) == (40.7, -74.0)


def test_store_rejects_two_active_checkins_for_one_user(db, service, clock):
    service.create_checkin('user1', A.lat, A.lng, Selection(anchorage_id='A'))
    db.add(models.Checkin(
        user_id='user1', location_name='dup', location_lat=0, location_lng=0,
        actual_gps_lat=0, actual_gps_lng=0, expires_at=clock.now, is_active=True,
    ))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_concurrent_checkin_is_retried(db, service, monkeypatch):
    service.create_checkin('user1', A.lat, A.lng, Selection(anchorage_id='A'))

    # the first pass misses the active row, as a racing request would
    real = service._deactivate_active
    calls = []

    def racy(user_id):
        calls.append(user_id)
        if len(calls) == 1:
            return 0
        return real(user_id)

    monkeypatch.setattr(service, '_deactivate_active', racy)
    second = service.create_checkin('user1', B.lat, B.lng, Selection(anchorage_id='B'))
    assert len(calls) == 2
    assert [c.id for c in active_for(db, 'user1')] == [second.id]


def test_store_failure_keeps_previous_checkin(db, service, monkeypatch):
    first = service.create_checkin('user1', A.lat, A.lng, Selection(anchorage_id='A'))

    def boom():
        raise OperationalError('INSERT INTO checkins', {}, Exception('database is down'))

    monkeypatch.setattr(db, 'commit', boom)
    with pytest.raises(StoreFailure):
        service.create_checkin('user1', B.lat, B.lng, Selection(anchorage_id='B'))
    monkeypatch.undo()
    assert [c.id for c in active_for(db, 'user1')] == [first.id]


def test_checkout_is_idempotent(db, service):
    service.create_checkin('user1', A.lat, A.lng, Selection(anchorage_id='A'))
    assert service.checkout('user1') == 1
    assert service.checkout('user1') == 0
    assert service.checkout('nobody') == 0
    assert active_for(db, 'user1') == []


def test_checkout_removes_user_from_listing(service):
    service.create_checkin('user1', A.lat, A.lng, Selection(anchorage_id='A'))
    service.create_checkin('user2', B.lat, B.lng, Selection(anchorage_id='B'))
    service.checkout('user1')
    assert [c.user_id for c in service.list_active_checkins()] == ['user2']


def test_listing_hides_invisible_profiles(db, service):
    db.add(models.Profile(id='hidden', is_visible=False))
    db.commit()
    service.create_checkin('hidden', A.lat, A.lng, Selection(anchorage_id='A'))
    service.create_checkin('shown', A.lat, A.lng, Selection(anchorage_id='A'))
    assert [c.user_id for c in service.list_active_checkins()] == ['shown']


def test_listing_is_newest_first(service, clock):
    service.create_checkin('user1', A.lat, A.lng, Selection(anchorage_id='A'))
    clock.advance(minutes=5)
    service.create_checkin('user2', B.lat, B.lng, Selection(anchorage_id='B'))
    assert [c.user_id for c in service.list_active_checkins()] == ['user2', 'user1']


def test_expired_checkin_excluded_even_while_flagged_active(db, service, clock, monkeypatch):
    ci = service.create_checkin('user1', A.lat, A.lng, Selection(anchorage_id='A'))
    clock.advance(hours=8, seconds=1)
    monkeypatch.setattr(service, 'expire_stale_checkins', lambda: 0)
    assert service.list_active_checkins() == []
    db.refresh(ci)
    assert ci.is_active is True
    assert service.current_checkin('user1') is None


def test_expiry_sweep_deactivates_stale_rows(db, service, clock):
    ci = service.create_checkin('user1', A.lat, A.lng, Selection(anchorage_id='A'))
    clock.advance(hours=9)
    assert service.expire_stale_checkins() == 1
    db.refresh(ci)
    assert ci.is_active is False
    assert service.expire_stale_checkins() == 0


def test_verify_refreshes_timestamp_and_fix(service, clock):
    ci = service.create_checkin('user1', A.lat, A.lng, Selection(anchorage_id='A'))
    clock.advance(hours=2)
    outcome = service.verify_location(ci, 18.3210, -64.6210)
    assert outcome.checked_out is False
    assert outcome.moved_away is False
    assert naive(outcome.checkin.last_verified_at) == naive(clock.now)
    assert (outcome.checkin.actual_gps_lat, outcome.checkin.actual_gps_lng) == (18.3210, -64.6210)
    assert service.next_verification_at(outcome.checkin) == clock.now + timedelta(hours=2)

    again = service.verify_location(ci, 18.3210, -64.6210)
    assert again.checked_out is False
    assert naive(again.checkin.last_verified_at) == naive(clock.now)


def test_verify_warns_when_boat_moved_away(service):
    ci = service.create_checkin('user1', A.lat, A.lng, Selection(anchorage_id='A'))
    outcome = service.verify_location(ci, B.lat, B.lng)
    assert outcome.checked_out is False
    assert outcome.moved_away is True
    assert outcome.distance_km == pytest.approx(19.6, abs=0.5)
    assert outcome.checkin.is_active is True


def test_verify_outside_region_with_restriction_checks_out(db, clock):
    service = make_service(db, clock, region_restriction_enabled=True)
    ci = service.create_checkin('user1', A.lat, A.lng, Selection(anchorage_id='A'))
    outcome = service.verify_location(ci, 40.7, -74.0)
    assert outcome.checked_out is True
    assert active_for(db, 'user1') == []

    again = service.verify_location(ci, 40.7, -74.0)
    assert again.checked_out is True


def test_verify_outside_region_without_restriction_keeps_checkin(db, service):
    ci = service.create_checkin('user1', A.lat, A.lng, Selection(anchorage_id='A'))
    outcome = service.verify_location(ci, 40.7, -74.0)
    assert outcome.checked_out is False
    assert len(active_for(db, 'user1')) == 1


def test_verify_user_without_checkin_reports_checked_out(service):
    assert service.verify_user_location('user1', A.lat, A.lng).checked_out is True


def test_verify_user_after_expiry_reports_checked_out(service, clock):
    service.create_checkin('user1', A.lat, A.lng, Selection(anchorage_id='A'))
    clock.advance(hours=9)
    assert service.verify_user_location('user1', A.lat, A.lng).checked_out is True


def test_verify_rejects_malformed_fix(service):
    ci = service.create_checkin('user1', A.lat, A.lng, Selection(anchorage_id='A'))
    with pytest.raises(InvalidInput):
        service.verify_location(ci, float('nan'), A.lng)
