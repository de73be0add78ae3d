import logging
import uuid
from dataclasses import dataclass
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.orm import Session
from storefront.core.database import get_db
from storefront.core.errors import Forbidden, Unauthorized
from storefront.core.security import CredentialStore, TokenService
from storefront.models.user import User
from storefront.services.user_service import user_service

logger = logging.getLogger(__name__)

# Bearer scheme - extracts the token from the Authorization header
# auto_error=False so a missing header becomes our own Unauthorized error
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Identity:
    """The caller resolved from a bearer token"""
    user_id: uuid.UUID
    username: str


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_credential_store(request: Request) -> CredentialStore:
    return request.app.state.credential_store


def get_current_user(
    bearer: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    token_service: TokenService = Depends(get_token_service),
    db: Session = Depends(get_db),
) -> Identity:
    """
    Resolve the caller's identity from the bearer token.

    Every other access check depends on this one, so authentication always
    runs first. Raises Unauthorized for a missing or invalid token, and for a
    token whose user has since been deleted.
    """
    if bearer is None:
        raise Unauthorized("Not authenticated")

    user_id = token_service.verify(bearer.credentials)

    row = db.execute(
        select(User.id, User.username).where(User.id == user_id)
    ).first()
    if row is None:
        logger.info(f"Token presented for unknown user {user_id}")
        raise Unauthorized()

    return Identity(user_id=row.id, username=row.username)


def require_owner(
    user_id: uuid.UUID,
    identity: Identity = Depends(get_current_user),
) -> Identity:
    """Allow the request only when the user_id path parameter is the caller"""
    if identity.user_id != user_id:
        raise Unauthorized("Not authorized")
    return identity


def require_admin(
    identity: Identity = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Identity:
    """
    Allow the request only for administrators.

    The flag is read from the store on every call rather than carried in the
    token, so granting or revoking admin applies to the very next request.
    """
    if not user_service.is_admin(db, identity.user_id):
        raise Forbidden("Admin privileges required")
    return identity
