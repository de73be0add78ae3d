import logging
import uuid
from decimal import Decimal
from typing import Any, Dict, List
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from storefront.core.database import integrity_error_kind
from storefront.core.errors import InfrastructureError, NotFound, ValidationError
from storefront.models.product import Product
from storefront.services.patch import Patch, apply_patch

logger = logging.getLogger(__name__)

PRODUCT_NOT_FOUND_MESSAGE = "Product not found"

UPDATABLE_FIELDS = frozenset({"name", "description", "price", "photo_url"})


class ProductService:
    @staticmethod
    def create_product(
        db: Session,
        name: str,
        description: str,
        price: Decimal,
        photo_url: str,
    ) -> Product:
        db_product = Product(
            id=uuid.uuid4(),
            name=name,
            description=description,
            price=price,
            photo_url=photo_url,
        )
        try:
            db.add(db_product)
            db.commit()
        except IntegrityError as e:
            db.rollback()
            if integrity_error_kind(e) == "check":
                raise ValidationError("Price must not be negative")
            logger.error(f"Error creating product {name}: {str(e)}")
            raise InfrastructureError(str(e)) from e
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error creating product {name}: {str(e)}")
            raise InfrastructureError(str(e)) from e

        db.refresh(db_product)
        logger.info(f"Created product {db_product.id}")
        return db_product

    @staticmethod
    def list_products(db: Session) -> List[Product]:
        return list(db.execute(select(Product).order_by(Product.name)).scalars())

    @staticmethod
    def get_product(db: Session, product_id: uuid.UUID) -> Product:
        product = db.get(Product, product_id)
        if product is None:
            raise NotFound(PRODUCT_NOT_FOUND_MESSAGE)
        return product

    @staticmethod
    def update_product(db: Session, product_id: uuid.UUID, patch: Patch) -> Dict[str, Any]:
        try:
            return apply_patch(db, Product.__table__, product_id, patch, UPDATABLE_FIELDS)
        except NotFound:
            raise NotFound(PRODUCT_NOT_FOUND_MESSAGE)

    @staticmethod
    def delete_product(db: Session, product_id: uuid.UUID) -> Dict[str, Any]:
        """Delete a product; favorites and cart items referencing it cascade"""
        table = Product.__table__
        try:
            row = db.execute(
                delete(table).where(table.c.id == product_id).returning(*table.c)
            ).mappings().first()
            if row is None:
                db.rollback()
                raise NotFound(PRODUCT_NOT_FOUND_MESSAGE)
            deleted = dict(row)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error deleting product {product_id}: {str(e)}")
            raise InfrastructureError(str(e)) from e

        logger.info(f"Deleted product {product_id}")
        return deleted


product_service = ProductService()
