"""Request-scoped dependencies shared by the v1 routers.

Authentication happens upstream; the gateway forwards the caller's id
(and optionally their e-mail) as headers.
"""
from typing import Optional

from fastapi import Header, HTTPException
from pydantic import EmailStr, TypeAdapter, ValidationError

_email = TypeAdapter(EmailStr)


def get_current_user_id(x_user_id: Optional[int] = Header(None)) -> int:
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    return x_user_id


def get_current_user_email(x_user_email: Optional[str] = Header(None)) -> Optional[str]:
    if x_user_email is None:
        return None
    try:
        return _email.validate_python(x_user_email)
    except ValidationError:
        raise HTTPException(status_code=422, detail="X-User-Email is not a valid e-mail address")
