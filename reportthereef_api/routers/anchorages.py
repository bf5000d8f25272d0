from typing import Optional

from fastapi import APIRouter, Depends, Query

from .. import schemas
from ..catalog import Anchorage
from ..dependencies import get_resolver
from ..resolver import AnchorageDistance, AnchorageResolver


router = APIRouter(prefix='/v1/anchorages', tags=['Anchorages'])


def _to_anchorage(a: Anchorage) -> schemas.AnchorageResponse:
    return schemas.AnchorageResponse(id=a.id, name=a.name, island=a.island, lat=a.lat, lng=a.lng)


def _with_distance(d: Optional[AnchorageDistance]) -> Optional[schemas.AnchorageWithDistance]:
    if d is None:
        return None
    a = d.anchorage
    return schemas.AnchorageWithDistance(id=a.id, name=a.name, island=a.island, lat=a.lat, lng=a.lng, distance=d.distance)


@router.get('', response_model=schemas.AnchorageListResponse)
def list_anchorages(resolver: AnchorageResolver = Depends(get_resolver)):
    return schemas.AnchorageListResponse(anchorages=[_to_anchorage(a) for a in resolver.catalog])


@router.get(':lookup', response_model=schemas.LookupResponse)
def lookup(lat: float = Query(...), lng: float = Query(...), resolver: AnchorageResolver = Depends(get_resolver)):
    result = resolver.lookup(lat, lng)
    return schemas.LookupResponse(
        nearest_anchorage=_with_distance(result.nearest),
        within_radius=result.within_radius,
        radius_km=result.radius_km,
    )


@router.get(':suggest', response_model=schemas.SuggestionsResponse)
def suggest(lat: float = Query(...), lng: float = Query(...), resolver: AnchorageResolver = Depends(get_resolver)):
    result = resolver.suggest(lat, lng)
    return schemas.SuggestionsResponse(
        suggestions=[_with_distance(d) for d in result.suggestions],
        nearest_within_radius=_with_distance(result.nearest_within_radius),
        region_restriction_disabled=result.region_restriction_disabled,
    )


@router.get('/{anchorage_id}', response_model=schemas.AnchorageResponse)
def get_anchorage(anchorage_id: str, resolver: AnchorageResolver = Depends(get_resolver)):
    return _to_anchorage(resolver.catalog.require(anchorage_id))
