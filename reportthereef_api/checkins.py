"""Check-in lifecycle: create, verify, checkout, expire, list.

A user has at most one active checkin. ``create_checkin`` retires the old one
and inserts the new one inside a single transaction; the partial unique
index on ``checkins(user_id) WHERE is_active`` catches whatever slips past
the row lock (SQLite has no ``FOR UPDATE``).
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .config import ResolverConfig
from .errors import InvalidInput, OutsideServiceRegion, StoreFailure
from .geo import distance_km, require_coordinates
from .resolver import AnchorageResolver

logger = logging.getLogger(__name__)

VISIBILITY_VALUES = ('public', 'friends')
CREATE_ATTEMPTS = 3


@dataclass(frozen=True)
class CustomLocation:
    name: str
    lat: float
    lng: float


@dataclass(frozen=True)
class Selection:
    """Either a catalog anchorage or a user-dropped pin, never both."""

    anchorage_id: Optional[str] = None
    custom_location: Optional[CustomLocation] = None


@dataclass
class VerifyOutcome:
    checkin: Optional[models.Checkin]
    checked_out: bool
    moved_away: bool = False
    distance_km: Optional[float] = None


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CheckinService:
    def __init__(
        self,
        db: Session,
        resolver: AnchorageResolver,
        clock: Callable[[], datetime] = models.utcnow,
    ):
        self.db = db
        self.resolver = resolver
        self.clock = clock

    @property
    def config(self) -> ResolverConfig:
        return self.resolver.config

    def _resolve_location(self, selection: Selection) -> Tuple[str, float, float, Optional[str]]:
        if selection.anchorage_id is not None and selection.custom_location is not None:
            raise InvalidInput('Choose either an anchorage or a custom location, not both')
        if selection.anchorage_id is not None:
            anchorage = self.resolver.catalog.require(selection.anchorage_id)
            return anchorage.label, anchorage.lat, anchorage.lng, anchorage.id

        custom = selection.custom_location
        if custom is None:
            raise InvalidInput('An anchorage or a custom location is required')
        name = custom.name.strip() if isinstance(custom.name, str) else ''
        if not name:
            raise InvalidInput('Custom location name is required')
        require_coordinates(custom.lat, custom.lng, label='Custom location coordinates')
        return name, custom.lat, custom.lng, None

    def create_checkin(
        self,
        user_id: str,
        gps_lat: float,
        gps_lng: float,
        selection: Selection,
        note: Optional[str] = None,
        visibility: str = 'public',
    ) -> models.Checkin:
        require_coordinates(gps_lat, gps_lng)
        if visibility not in VISIBILITY_VALUES:
            raise InvalidInput(f'visibility must be one of: {", ".join(VISIBILITY_VALUES)}')
        if not self.resolver.allows_position(gps_lat, gps_lng):
            raise OutsideServiceRegion()
        location_name, location_lat, location_lng, anchorage_id = self._resolve_location(selection)

        for attempt in range(1, CREATE_ATTEMPTS + 1):
            now = self.clock()
            try:
                self._lock_user(user_id)
                self._deactivate_active(user_id)
                checkin = models.Checkin(
                    user_id=user_id,
                    location_name=location_name,
                    location_lat=location_lat,
                    location_lng=location_lng,
                    anchorage_id=anchorage_id,
                    is_custom_location=anchorage_id is None,
                    actual_gps_lat=gps_lat,
                    actual_gps_lng=gps_lng,
                    note=note,
                    visibility=visibility,
                    checked_in_at=now,
                    expires_at=now + timedelta(hours=self.config.expiry_hours),
                    last_verified_at=now,
                    is_active=True,
                )
                self.db.add(checkin)
                self.db.commit()
            except IntegrityError:
                # another request for this user committed first; retire it and try again
                self.db.rollback()
                logger.warning('Concurrent check-in for user %s (attempt %d)', user_id, attempt)
                continue
            except SQLAlchemyError:
                self.db.rollback()
                logger.exception('Failed to create check-in for user %s', user_id)
                raise StoreFailure('Failed to check in')
            self.db.refresh(checkin)
            logger.info('User %s checked in at %s', user_id, location_name)
            return checkin

        logger.error('Giving up on check-in for user %s after %d attempts', user_id, CREATE_ATTEMPTS)
        raise StoreFailure('Failed to check in')

    def _lock_user(self, user_id: str) -> None:
        """Serialise check-ins per user where the backend supports row locks."""
        profile = (
            self.db.query(models.Profile)
            .filter(models.Profile.id == user_id)
            .with_for_update()
            .first()
        )
        if profile is None:
            self.db.add(models.Profile(id=user_id))
            self.db.flush()

    def _deactivate_active(self, user_id: str) -> int:
        result = self.db.execute(
            update(models.Checkin)
            .where(models.Checkin.user_id == user_id, models.Checkin.is_active.is_(True))
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    def current_checkin(self, user_id: str) -> Optional[models.Checkin]:
        try:
            return (
                self.db.query(models.Checkin)
                .filter(
                    models.Checkin.user_id == user_id,
                    models.Checkin.is_active.is_(True),
                    models.Checkin.expires_at > self.clock(),
                )
                .order_by(models.Checkin.checked_in_at.desc())
                .first()
            )
        except SQLAlchemyError:
            logger.exception('Failed to load current check-in for user %s', user_id)
            raise StoreFailure('Failed to fetch check-in')

    def next_verification_at(self, checkin: models.Checkin) -> datetime:
        return _as_utc(checkin.last_verified_at) + timedelta(hours=self.config.verification_interval_hours)

    def verify_location(self, checkin: models.Checkin, gps_lat: float, gps_lng: float) -> VerifyOutcome:
        require_coordinates(gps_lat, gps_lng)
        now = self.clock()
        if not checkin.is_active or _as_utc(checkin.expires_at) <= now:
            return VerifyOutcome(checkin=None, checked_out=True)

        try:
            if not self.resolver.allows_position(gps_lat, gps_lng):
                checkin.is_active = False
                self.db.commit()
                logger.info('User %s left the service region; checked out', checkin.user_id)
                return VerifyOutcome(checkin=None, checked_out=True)

            distance = distance_km(checkin.location_lat, checkin.location_lng, gps_lat, gps_lng)
            checkin.last_verified_at = now
            checkin.actual_gps_lat = gps_lat
            checkin.actual_gps_lng = gps_lng
            self.db.commit()
            self.db.refresh(checkin)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception('Failed to verify check-in %s', checkin.id)
            raise StoreFailure('Failed to verify location')

        if distance > self.config.moved_away_distance_km:
            return VerifyOutcome(checkin=checkin, checked_out=False, moved_away=True, distance_km=round(distance, 1))
        return VerifyOutcome(checkin=checkin, checked_out=False)

    def verify_user_location(self, user_id: str, gps_lat: float, gps_lng: float) -> VerifyOutcome:
        require_coordinates(gps_lat, gps_lng)
        checkin = self.current_checkin(user_id)
        if checkin is None:
            return VerifyOutcome(checkin=None, checked_out=True)
        return self.verify_location(checkin, gps_lat, gps_lng)

    def checkout(self, user_id: str) -> int:
        try:
            count = self._deactivate_active(user_id)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception('Failed to check out user %s', user_id)
            raise StoreFailure('Failed to check out')
        if count:
            logger.info('User %s checked out', user_id)
        return count

    def expire_stale_checkins(self) -> int:
        try:
            result = self.db.execute(
                update(models.Checkin)
                .where(models.Checkin.is_active.is_(True), models.Checkin.expires_at <= self.clock())
                .values(is_active=False)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError:
            # housekeeping only; the listing filters on expires_at anyway
            self.db.rollback()
            logger.exception('Failed to expire stale check-ins')
            return 0
        count = result.rowcount or 0
        if count:
            logger.debug('Expired %d stale check-ins', count)
        return count

    def list_active_checkins(self) -> List[models.Checkin]:
        self.expire_stale_checkins()
        try:
            return (
                self.db.query(models.Checkin)
                .join(models.Profile, models.Profile.id == models.Checkin.user_id)
                .filter(
                    models.Checkin.is_active.is_(True),
                    models.Checkin.expires_at > self.clock(),
                    models.Profile.is_visible.is_(True),
                )
                .order_by(models.Checkin.checked_in_at.desc())
                .all()
            )
        except SQLAlchemyError:
            logger.exception('Failed to fetch check-ins')
            raise StoreFailure('Failed to fetch check-ins')
