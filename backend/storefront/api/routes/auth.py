import logging
import uuid
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session
from storefront.core.database import get_db
from storefront.core.errors import Unauthorized
from storefront.core.security import CredentialStore, TokenService
from storefront.api.dependencies import (
    Identity, get_credential_store, get_current_user, get_token_service,
)
from storefront.services.user_service import user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


class LoginRequest(BaseModel):
    username: str
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str


class MeResponse(BaseModel):
    user_id: uuid.UUID
    username: str


@router.post("/login", response_model=Token)
def login(
    credentials: LoginRequest,
    token_service: TokenService = Depends(get_token_service),
    credential_store: CredentialStore = Depends(get_credential_store),
    db: Session = Depends(get_db),
):
    """Login and get access token"""
    user = user_service.authenticate(
        db, credential_store, credentials.username, credentials.password)

    # Same message whether the username or the password was wrong
    if user is None:
        logger.info(f"Failed login for {credentials.username}")
        raise Unauthorized("Incorrect username or password")

    access_token = token_service.issue(user.id)
    return {"access_token": access_token, "token_type": "bearer"}


@router.get("/me", response_model=MeResponse)
def get_current_user_info(identity: Identity = Depends(get_current_user)):
    """Get current user information"""
    return {"user_id": identity.user_id, "username": identity.username}
