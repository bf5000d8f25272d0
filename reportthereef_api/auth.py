"""Caller identity.

Authentication happens upstream; the gateway forwards the authenticated user
id in ``X-User-Id``. Nothing here validates credentials.
"""
from typing import Optional

from fastapi import Header

from .errors import AuthenticationRequired


def optional_user_id(x_user_id: Optional[str] = Header(None, alias='X-User-Id')) -> Optional[str]:
    if x_user_id is None or not x_user_id.strip():
        return None
    return x_user_id.strip()


def require_user_id(x_user_id: Optional[str] = Header(None, alias='X-User-Id')) -> str:
    user_id = optional_user_id(x_user_id)
    if user_id is None:
        raise AuthenticationRequired()
    return user_id
