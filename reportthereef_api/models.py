import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, Boolean, ForeignKey, DateTime, Float, Text, Index, text
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def uuid4_str() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Profile(Base):
    __tablename__ = 'profiles'

    id = Column(String, primary_key=True, default=uuid4_str)
    display_name = Column(Text)
    boat_name = Column(Text)
    photo_url = Column(Text)
    is_visible = Column(Boolean, nullable=False, default=True)
    create_time = Column(DateTime(timezone=True), default=utcnow)
    update_time = Column(DateTime(timezone=True), default=utcnow)

    checkins = relationship('Checkin', back_populates='profile')


class Checkin(Base):
    __tablename__ = 'checkins'
    __table_args__ = (
        # At most one active checkin per user, enforced by the store
        Index(
            'uq_checkins_one_active_per_user',
            'user_id',
            unique=True,
            postgresql_where=text('is_active'),
            sqlite_where=text('is_active = 1'),
        ),
        Index('ix_checkins_active_expires', 'is_active', 'expires_at'),
    )

    id = Column(String, primary_key=True, default=uuid4_str)
    user_id = Column(String, ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False)
    location_name = Column(Text, nullable=False)
    location_lat = Column(Float, nullable=False)
    location_lng = Column(Float, nullable=False)
    anchorage_id = Column(Text)
    is_custom_location = Column(Boolean, nullable=False, default=False)
    actual_gps_lat = Column(Float, nullable=False)
    actual_gps_lng = Column(Float, nullable=False)
    note = Column(Text)
    visibility = Column(Text, nullable=False, default='public')
    checked_in_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    last_verified_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    is_active = Column(Boolean, nullable=False, default=True)

    profile = relationship('Profile', back_populates='checkins')
