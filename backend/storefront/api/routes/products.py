import uuid
from decimal import Decimal
from typing import List, Optional
from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session
from storefront.core.database import get_db
from storefront.api.dependencies import Identity, require_admin
from storefront.services.patch import Patch
from storefront.services.product_service import product_service

router = APIRouter(prefix="/products", tags=["products"])


class ProductCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    # Two decimal places, matching the Numeric(10, 2) column
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    photo_url: str = Field(min_length=1)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = Field(default=None, min_length=1)
    price: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    photo_url: Optional[str] = Field(default=None, min_length=1)

    model_config = ConfigDict(extra="forbid")


class ProductResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: str
    price: Decimal
    photo_url: str

    model_config = ConfigDict(from_attributes=True)


@router.get("", response_model=List[ProductResponse])
def list_products(db: Session = Depends(get_db)):
    return product_service.list_products(db)


@router.get("/{product_id}", response_model=ProductResponse)
def get_product(product_id: uuid.UUID, db: Session = Depends(get_db)):
    return product_service.get_product(db, product_id)


@router.post("/create", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
def create_product(
    product: ProductCreate,
    _: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Create a new product (admin only)"""
    return product_service.create_product(
        db,
        name=product.name,
        description=product.description,
        price=product.price,
        photo_url=product.photo_url,
    )


@router.patch("/{product_id}", response_model=ProductResponse)
def update_product(
    product_id: uuid.UUID,
    product_update: ProductUpdate,
    _: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return product_service.update_product(db, product_id, Patch.from_model(product_update))


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(
    product_id: uuid.UUID,
    _: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    product_service.delete_product(db, product_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
