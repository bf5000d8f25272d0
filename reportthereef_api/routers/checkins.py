from typing import Optional

from fastapi import APIRouter, Depends

from .. import models, schemas
from ..auth import optional_user_id, require_user_id
from ..checkins import CheckinService, CustomLocation, Selection
from ..dependencies import get_checkin_service


router = APIRouter(prefix='/v1/checkIns', tags=['CheckIns'])


def _base_fields(ci: models.Checkin) -> dict:
    return dict(
        name=f'checkIns/{ci.id}',
        id=ci.id,
        user_id=ci.user_id,
        location_name=ci.location_name,
        location_lat=ci.location_lat,
        location_lng=ci.location_lng,
        anchorage_id=ci.anchorage_id,
        is_custom_location=ci.is_custom_location,
        note=ci.note,
        visibility=ci.visibility,
        checked_in_at=ci.checked_in_at,
        expires_at=ci.expires_at,
    )


def to_checkin_response(ci: models.Checkin, service: CheckinService) -> schemas.CheckInResponse:
    return schemas.CheckInResponse(
        next_verification_at=service.next_verification_at(ci),
        actual_gps_lat=ci.actual_gps_lat,
        actual_gps_lng=ci.actual_gps_lng,
        last_verified_at=ci.last_verified_at,
        is_active=ci.is_active,
        **_base_fields(ci),
    )


def to_public_checkin(ci: models.Checkin) -> schemas.PublicCheckIn:
    p = ci.profile
    profile = schemas.CheckInProfile(
        display_name=p.display_name,
        boat_name=p.boat_name,
        photo_url=p.photo_url,
        is_visible=p.is_visible,
    )
    return schemas.PublicCheckIn(profile=profile, **_base_fields(ci))


@router.get('', response_model=schemas.CheckInListResponse)
def list_checkins(
    user_id: Optional[str] = Depends(optional_user_id),
    service: CheckinService = Depends(get_checkin_service),
):
    checkins = service.list_active_checkins()
    mine = service.current_checkin(user_id) if user_id else None
    return schemas.CheckInListResponse(
        checkIns=[to_public_checkin(c) for c in checkins],
        myCheckIn=to_checkin_response(mine, service) if mine else None,
    )


@router.post('', response_model=schemas.CheckInResponse, status_code=201)
def create_checkin(
    payload: schemas.CheckInCreate,
    user_id: str = Depends(require_user_id),
    service: CheckinService = Depends(get_checkin_service),
):
    custom = None
    if payload.custom_location is not None:
        loc = payload.custom_location
        custom = CustomLocation(name=loc.name, lat=loc.lat, lng=loc.lng)
    checkin = service.create_checkin(
        user_id,
        payload.gps_lat,
        payload.gps_lng,
        Selection(anchorage_id=payload.anchorage_id, custom_location=custom),
        note=payload.note,
        visibility=payload.visibility,
    )
    return to_checkin_response(checkin, service)


@router.post(':verify', response_model=schemas.VerifyResponse)
def verify_checkin(
    payload: schemas.VerifyRequest,
    user_id: str = Depends(require_user_id),
    service: CheckinService = Depends(get_checkin_service),
):
    outcome = service.verify_user_location(user_id, payload.gps_lat, payload.gps_lng)
    return schemas.VerifyResponse(
        checkIn=to_checkin_response(outcome.checkin, service) if outcome.checkin else None,
        checkedOut=outcome.checked_out,
        movedAway=outcome.moved_away,
        distanceKm=outcome.distance_km,
    )


@router.post(':checkout', response_model=schemas.CheckoutResponse)
def checkout(
    user_id: str = Depends(require_user_id),
    service: CheckinService = Depends(get_checkin_service),
):
    count = service.checkout(user_id)
    return schemas.CheckoutResponse(success=True, deactivatedCount=count)
