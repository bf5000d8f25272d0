from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, StrictFloat


# Anchorages
class AnchorageResponse(BaseModel):
    id: str
    name: str
    island: str
    lat: float
    lng: float


class AnchorageWithDistance(AnchorageResponse):
    distance: float


class AnchorageListResponse(BaseModel):
    anchorages: List[AnchorageResponse]


class LookupResponse(BaseModel):
    nearest_anchorage: Optional[AnchorageWithDistance] = Field(None, alias='nearestAnchorage')
    within_radius: bool = Field(..., alias='withinRadius')
    radius_km: float = Field(..., alias='radiusKm')

    model_config = ConfigDict(populate_by_name=True)


class SuggestionsResponse(BaseModel):
    suggestions: List[AnchorageWithDistance]
    nearest_within_radius: Optional[AnchorageWithDistance] = Field(None, alias='nearestWithinRadius')
    region_restriction_disabled: bool = Field(..., alias='regionRestrictionDisabled')

    model_config = ConfigDict(populate_by_name=True)


# Check-ins
class CustomLocationPayload(BaseModel):
    name: Optional[str] = None
    lat: Optional[StrictFloat] = None
    lng: Optional[StrictFloat] = None


class CheckInCreate(BaseModel):
    anchorage_id: Optional[str] = Field(None, alias='anchorageId')
    custom_location: Optional[CustomLocationPayload] = Field(None, alias='customLocation')
    gps_lat: Optional[StrictFloat] = Field(None, alias='gpsLat')
    gps_lng: Optional[StrictFloat] = Field(None, alias='gpsLng')
    note: Optional[str] = Field(None, max_length=500)
    visibility: str = 'public'

    model_config = ConfigDict(populate_by_name=True)


class VerifyRequest(BaseModel):
    gps_lat: Optional[StrictFloat] = Field(None, alias='gpsLat')
    gps_lng: Optional[StrictFloat] = Field(None, alias='gpsLng')

    model_config = ConfigDict(populate_by_name=True)


class CheckInBase(BaseModel):
    name: str
    id: str
    user_id: str = Field(..., alias='userId')
    location_name: str = Field(..., alias='locationName')
    location_lat: float = Field(..., alias='locationLat')
    location_lng: float = Field(..., alias='locationLng')
    anchorage_id: Optional[str] = Field(None, alias='anchorageId')
    is_custom_location: bool = Field(..., alias='isCustomLocation')
    note: Optional[str] = None
    visibility: str
    checked_in_at: datetime = Field(..., alias='checkedInAt')
    expires_at: datetime = Field(..., alias='expiresAt')

    model_config = ConfigDict(populate_by_name=True)


class CheckInResponse(CheckInBase):
    """The owner's view, including the device fix."""

    actual_gps_lat: float = Field(..., alias='actualGpsLat')
    actual_gps_lng: float = Field(..., alias='actualGpsLng')
    last_verified_at: datetime = Field(..., alias='lastVerifiedAt')
    is_active: bool = Field(..., alias='isActive')
    next_verification_at: datetime = Field(..., alias='nextVerificationAt')


class CheckInProfile(BaseModel):
    display_name: Optional[str] = Field(None, alias='displayName')
    boat_name: Optional[str] = Field(None, alias='boatName')
    photo_url: Optional[str] = Field(None, alias='photoUrl')
    is_visible: bool = Field(..., alias='isVisible')

    model_config = ConfigDict(populate_by_name=True)


class PublicCheckIn(CheckInBase):
    profile: CheckInProfile


class CheckInListResponse(BaseModel):
    checkIns: List[PublicCheckIn]
    myCheckIn: Optional[CheckInResponse] = None

    model_config = ConfigDict(populate_by_name=True)


class VerifyResponse(BaseModel):
    checkIn: Optional[CheckInResponse] = None
    checkedOut: bool
    movedAway: bool = False
    distanceKm: Optional[float] = None


class CheckoutResponse(BaseModel):
    success: bool
    deactivatedCount: int


# Profile
class ProfilePayload(BaseModel):
    display_name: Optional[str] = Field(None, alias='displayName')
    boat_name: Optional[str] = Field(None, alias='boatName')
    photo_url: Optional[str] = Field(None, alias='photoUrl')
    is_visible: Optional[bool] = Field(None, alias='isVisible')

    model_config = ConfigDict(populate_by_name=True)


class ProfileResponse(ProfilePayload):
    name: str
    id: str
