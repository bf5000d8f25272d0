from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import require_user_id
from ..database import get_db


router = APIRouter(prefix='/v1/profile', tags=['Profile'])


def _ensure_profile(db: Session, user_id: str) -> models.Profile:
    p = db.query(models.Profile).filter(models.Profile.id == user_id).first()
    if not p:
        p = models.Profile(id=user_id)
        db.add(p)
        db.commit()
        db.refresh(p)
    return p


def _to_response(p: models.Profile) -> schemas.ProfileResponse:
    return schemas.ProfileResponse(
        name=f'profiles/{p.id}',
        id=p.id,
        display_name=p.display_name,
        boat_name=p.boat_name,
        photo_url=p.photo_url,
        is_visible=p.is_visible,
    )


@router.get('', response_model=schemas.ProfileResponse)
def get_profile(user_id: str = Depends(require_user_id), db: Session = Depends(get_db)):
    return _to_response(_ensure_profile(db, user_id))


@router.patch('', response_model=schemas.ProfileResponse)
def patch_profile(
    payload: schemas.ProfilePayload,
    updateMask: Optional[str] = Query(None, description='Comma-separated list of fields to update'),
    user_id: str = Depends(require_user_id),
    db: Session = Depends(get_db),
):
    p = _ensure_profile(db, user_id)
    allowed = {
        'displayName': 'display_name',
        'boatName': 'boat_name',
        'photoUrl': 'photo_url',
        'isVisible': 'is_visible',
    }
    fields = None
    if updateMask:
        fields = [f.strip() for f in updateMask.split(',') if f.strip()]
        for f in fields:
            if f not in allowed:
                raise HTTPException(status_code=400, detail=f'Unknown field in updateMask: {f}')

    updates = {}
    for key, attr in allowed.items():
        value = getattr(payload, attr)
        if value is not None and (not fields or key in fields):
            updates[attr] = value
    if not updates:
        raise HTTPException(status_code=400, detail='No valid fields to update')

    if 'display_name' in updates:
        display_name = updates['display_name'].strip()
        if not (2 <= len(display_name) <= 50):
            raise HTTPException(status_code=400, detail='Display name must be between 2 and 50 characters')
        updates['display_name'] = display_name

    for attr, value in updates.items():
        setattr(p, attr, value)
    p.update_time = models.utcnow()
    db.commit()
    db.refresh(p)
    return _to_response(p)
