import uuid
from typing import List, Optional
from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from sqlalchemy.orm import Session
from storefront.core.database import get_db
from storefront.core.security import CredentialStore
from storefront.api.dependencies import (
    Identity, get_credential_store, require_admin, require_owner,
)
from storefront.services.patch import Patch
from storefront.services.user_service import user_service

router = APIRouter(prefix="/users", tags=["users"])


class UserCreate(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    email: EmailStr
    address: Optional[str] = None
    phone_number: Optional[str] = None
    billing_info: Optional[str] = None


class UserUpdate(BaseModel):
    # Only fields present in the request body are applied
    username: Optional[str] = Field(default=None, min_length=1)
    password: Optional[str] = Field(default=None, min_length=1)
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    phone_number: Optional[str] = None
    billing_info: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class UserResponse(BaseModel):
    # No password field: the credential never leaves the server
    id: uuid.UUID
    username: str
    email: str
    address: Optional[str]
    phone_number: Optional[str]
    billing_info: Optional[str]
    is_admin: bool

    model_config = ConfigDict(from_attributes=True)


@router.post("/signup", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def signup(
    user_data: UserCreate,
    credential_store: CredentialStore = Depends(get_credential_store),
    db: Session = Depends(get_db),
):
    """Register a new user"""
    # is_admin is never taken from the request body
    return user_service.create_user(
        db,
        credential_store,
        username=user_data.username,
        password=user_data.password,
        email=user_data.email,
        address=user_data.address,
        phone_number=user_data.phone_number,
        billing_info=user_data.billing_info,
    )


@router.get("", response_model=List[UserResponse])
def list_users(
    _: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """List all users (admin only)"""
    return user_service.list_users(db)


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: uuid.UUID,
    _: Identity = Depends(require_owner),
    db: Session = Depends(get_db),
):
    return user_service.get_user(db, user_id)


@router.patch("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: uuid.UUID,
    user_update: UserUpdate,
    _: Identity = Depends(require_owner),
    credential_store: CredentialStore = Depends(get_credential_store),
    db: Session = Depends(get_db),
):
    """Update only the fields sent in the body"""
    return user_service.update_user(
        db, credential_store, user_id, Patch.from_model(user_update))


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: uuid.UUID,
    _: Identity = Depends(require_owner),
    db: Session = Depends(get_db),
):
    """Delete the caller's account along with its favorites and cart"""
    user_service.delete_user(db, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
