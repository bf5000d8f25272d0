"""Nearest-anchorage resolution.

``AnchorageResolver`` answers "which anchorage is this boat at?" from a raw
GPS fix. It owns no state beyond the catalog and its config, both fixed at
construction.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from .catalog import Anchorage, AnchorageCatalog
from .config import ResolverConfig
from .errors import OutsideServiceRegion
from .geo import distance_km, require_coordinates

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnchorageDistance:
    anchorage: Anchorage
    distance: float


@dataclass(frozen=True)
class Lookup:
    nearest: Optional[AnchorageDistance]
    radius_km: float

    @property
    def within_radius(self) -> bool:
        return self.nearest is not None


@dataclass(frozen=True)
class Suggestions:
    suggestions: List[AnchorageDistance]
    nearest_within_radius: Optional[AnchorageDistance]
    region_restriction_disabled: bool


class AnchorageResolver:
    def __init__(self, catalog: AnchorageCatalog, config: ResolverConfig):
        self.catalog = catalog
        self.config = config

    def is_within_region(self, lat: float, lng: float) -> bool:
        return self.config.region.contains(lat, lng)

    def allows_position(self, lat: float, lng: float) -> bool:
        """False only when region restriction is on and the fix is outside the region."""
        if not self.config.region_restriction_enabled:
            return True
        return self.is_within_region(lat, lng)

    def _distances(self, lat: float, lng: float) -> List[AnchorageDistance]:
        return [AnchorageDistance(a, distance_km(lat, lng, a.lat, a.lng)) for a in self.catalog]

    def find_nearest_within_radius(self, lat: float, lng: float) -> Optional[AnchorageDistance]:
        require_coordinates(lat, lng)
        best = None
        for candidate in self._distances(lat, lng):
            if candidate.distance > self.config.auto_checkin_radius_km:
                continue
            # strict comparison keeps the first catalog entry on a tie
            if best is None or candidate.distance < best.distance:
                best = candidate
        return best

    def sorted_by_distance(self, lat: float, lng: float) -> List[AnchorageDistance]:
        """Every anchorage, nearest first.

        Outside the service region with restriction off, distances are
        measured from the fallback anchorage instead of the device fix so
        boaters testing from elsewhere still get a usable list. With
        restriction on, an out-of-region fix is refused.
        """
        require_coordinates(lat, lng)
        search_lat, search_lng = lat, lng
        if not self.is_within_region(lat, lng):
            if self.config.region_restriction_enabled:
                raise OutsideServiceRegion()
            # TODO: drop the fallback substitution once region restriction is re-enabled for launch
            search_lat, search_lng = self.config.fallback.lat, self.config.fallback.lng
            logger.debug('Fix %.4f,%.4f outside service region; using fallback %.4f,%.4f',
                         lat, lng, search_lat, search_lng)
        return sorted(self._distances(search_lat, search_lng), key=lambda d: d.distance)

    def lookup(self, lat: float, lng: float) -> Lookup:
        return Lookup(nearest=self.find_nearest_within_radius(lat, lng), radius_km=self.config.auto_checkin_radius_km)

    def suggest(self, lat: float, lng: float) -> Suggestions:
        ordered = self.sorted_by_distance(lat, lng)
        return Suggestions(
            suggestions=ordered[: self.config.suggestion_limit],
            nearest_within_radius=self.find_nearest_within_radius(lat, lng),
            region_restriction_disabled=not self.config.region_restriction_enabled,
        )
