"""
FastAPI dependencies shared by the route modules.

Token checking lives here rather than in the identity service: the bearer
token is decoded with python-jose and resolved to an active Identity.
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from sims.config import Settings
from sims.database import get_db
from sims.errors import Unauthenticated
from sims.models.identity import Identity
from sims.services.mailer import Mailer

bearer_scheme = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer


def get_optional_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
) -> Optional[Identity]:
    """Resolve the bearer token, or return None when no token was sent."""
    if credentials is None:
        return None
    try:
        payload = jwt.decode(credentials.credentials, settings.jwt_secret,
                             algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise Unauthenticated("Token is not valid")

    identity_id = payload.get("sub")
    identity = db.get(Identity, identity_id) if identity_id else None
    if identity is None or not identity.is_active:
        raise Unauthenticated("Token is not valid")
    return identity


def get_current_identity(
    identity: Optional[Identity] = Depends(get_optional_identity),
) -> Identity:
    if identity is None:
        raise Unauthenticated()
    return identity
