from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from .catalog import load_catalog
from .checkins import CheckinService
from .config import get_settings
from .database import get_db
from .resolver import AnchorageResolver


@lru_cache
def get_resolver() -> AnchorageResolver:
    return AnchorageResolver(load_catalog(), get_settings().resolver)


def get_checkin_service(
    db: Session = Depends(get_db),
    resolver: AnchorageResolver = Depends(get_resolver),
) -> CheckinService:
    return CheckinService(db, resolver)
