import uuid
from typing import List
from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session
from storefront.core.database import get_db
from storefront.api.dependencies import Identity, require_owner
from storefront.services.favorite_service import favorite_service

router = APIRouter(prefix="/users/{user_id}/favorites", tags=["favorites"])


class FavoriteCreate(BaseModel):
    product_id: uuid.UUID


class FavoriteResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    product_id: uuid.UUID

    model_config = ConfigDict(from_attributes=True)


@router.post("", response_model=FavoriteResponse, status_code=status.HTTP_201_CREATED)
def create_favorite(
    user_id: uuid.UUID,
    favorite: FavoriteCreate,
    _: Identity = Depends(require_owner),
    db: Session = Depends(get_db),
):
    return favorite_service.create_favorite(db, user_id, favorite.product_id)


@router.get("", response_model=List[FavoriteResponse])
def list_favorites(
    user_id: uuid.UUID,
    _: Identity = Depends(require_owner),
    db: Session = Depends(get_db),
):
    return favorite_service.list_favorites(db, user_id)


@router.delete("/{favorite_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_favorite(
    user_id: uuid.UUID,
    favorite_id: uuid.UUID,
    _: Identity = Depends(require_owner),
    db: Session = Depends(get_db),
):
    favorite_service.delete_favorite(db, user_id, favorite_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
