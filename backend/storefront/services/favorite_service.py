import logging
import uuid
from typing import Any, Dict, List
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from storefront.core.database import integrity_error_kind
from storefront.core.errors import Conflict, InfrastructureError, NotFound
from storefront.models.favorite import Favorite
from storefront.models.product import Product

logger = logging.getLogger(__name__)


class FavoriteService:
    @staticmethod
    def create_favorite(db: Session, user_id: uuid.UUID, product_id: uuid.UUID) -> Favorite:
        """
        Mark a product as favorite for a user.

        Raises NotFound for an unknown product or user and Conflict when the
        user has already favorited it. The unique constraint decides between racing
        requests, so exactly one of them succeeds.
        """
        exists = db.execute(
            select(Product.id).where(Product.id == product_id)
        ).scalar_one_or_none()
        if exists is None:
            raise NotFound("Product not found")

        db_favorite = Favorite(id=uuid.uuid4(), user_id=user_id, product_id=product_id)
        try:
            db.add(db_favorite)
            db.commit()
        except IntegrityError as e:
            db.rollback()
            kind = integrity_error_kind(e)
            if kind == "unique":
                raise Conflict("Product is already a favorite")
            if kind == "foreign_key":
                # Product or user removed since the check above
                raise NotFound("Product or user not found")
            logger.error(f"Error creating favorite for user {user_id}: {str(e)}")
            raise InfrastructureError(str(e)) from e
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error creating favorite for user {user_id}: {str(e)}")
            raise InfrastructureError(str(e)) from e

        db.refresh(db_favorite)
        logger.info(f"User {user_id} favorited product {product_id}")
        return db_favorite

    @staticmethod
    def list_favorites(db: Session, user_id: uuid.UUID) -> List[Favorite]:
        return list(db.execute(
            select(Favorite).where(Favorite.user_id == user_id)
        ).scalars())

    @staticmethod
    def delete_favorite(db: Session, user_id: uuid.UUID, favorite_id: uuid.UUID) -> Dict[str, Any]:
        """Delete one of the user's favorites and return the deleted row"""
        table = Favorite.__table__
        try:
            # Scoped to user_id so one user can never remove another's favorite
            row = db.execute(
                delete(table)
                .where(table.c.id == favorite_id, table.c.user_id == user_id)
                .returning(*table.c)
            ).mappings().first()
            if row is None:
                db.rollback()
                raise NotFound("Favorite not found")
            deleted = dict(row)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error deleting favorite {favorite_id}: {str(e)}")
            raise InfrastructureError(str(e)) from e

        logger.info(f"User {user_id} removed favorite {favorite_id}")
        return deleted


favorite_service = FavoriteService()
