"""Static anchorage catalog.

The catalog ships as ``data/anchorages.json`` inside the package and is read
once. Entries keep their file order; nearest-anchorage ties resolve to
whichever entry comes first.
"""
import json
from dataclasses import dataclass
from functools import lru_cache
from importlib import resources
from types import MappingProxyType
from typing import Iterable, Iterator, Optional, Tuple

from .errors import NotFound


@dataclass(frozen=True)
class Anchorage:
    id: str
    name: str
    island: str
    lat: float
    lng: float

    @property
    def label(self) -> str:
        return f'{self.name}, {self.island}'


class AnchorageCatalog:
    def __init__(self, anchorages: Iterable[Anchorage]):
        entries: Tuple[Anchorage, ...] = tuple(anchorages)
        by_id = {}
        for a in entries:
            if a.id in by_id:
                raise ValueError(f'Duplicate anchorage id: {a.id}')
            by_id[a.id] = a
        self._entries = entries
        self._by_id = MappingProxyType(by_id)

    def __iter__(self) -> Iterator[Anchorage]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, anchorage_id: object) -> bool:
        return anchorage_id in self._by_id

    def get(self, anchorage_id: str) -> Optional[Anchorage]:
        return self._by_id.get(anchorage_id)

    def require(self, anchorage_id: str) -> Anchorage:
        anchorage = self._by_id.get(anchorage_id)
        if anchorage is None:
            raise NotFound('Invalid anchorage selected')
        return anchorage


def parse_catalog(raw: list) -> AnchorageCatalog:
    if not isinstance(raw, list):
        raise ValueError('Anchorage catalog must be a JSON array')
    return AnchorageCatalog(
        Anchorage(id=str(r['id']), name=r['name'], island=r['island'], lat=float(r['lat']), lng=float(r['lng']))
        for r in raw
    )


@lru_cache
def load_catalog() -> AnchorageCatalog:
    """Load the bundled catalog (cached)."""
    text = resources.files('reportthereef_api.data').joinpath('anchorages.json').read_text(encoding='utf-8')
    return parse_catalog(json.loads(text))
