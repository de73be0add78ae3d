import logging
import uuid
from typing import Any, Dict, List, Optional
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from storefront.core.errors import Conflict, InfrastructureError, NotFound
from storefront.core.database import integrity_error_kind
from storefront.core.security import CredentialStore
from storefront.models.user import User
from storefront.services.patch import Patch, apply_patch

logger = logging.getLogger(__name__)

USER_NOT_FOUND_MESSAGE = "User not found"

# Columns a user may change through PATCH; id and is_admin are not among them
UPDATABLE_FIELDS = frozenset({
    "username", "password", "email", "address", "phone_number", "billing_info",
})

# Every column except the credential
PUBLIC_COLUMNS = (
    User.id, User.username, User.email, User.address,
    User.phone_number, User.billing_info, User.is_admin,
)


class UserService:
    @staticmethod
    def create_user(
        db: Session,
        credentials: CredentialStore,
        username: str,
        password: str,
        email: str,
        address: Optional[str] = None,
        phone_number: Optional[str] = None,
        billing_info: Optional[str] = None,
        is_admin: bool = False,
    ) -> User:
        """Create a user, storing only the hash of password"""
        db_user = User(
            id=uuid.uuid4(),
            username=username,
            password=credentials.hash(password),
            email=email,
            address=address,
            phone_number=phone_number,
            billing_info=billing_info,
            is_admin=is_admin,
        )
        try:
            db.add(db_user)
            db.commit()
        except IntegrityError as e:
            db.rollback()
            # Two signups racing for the same username/email end up here
            if integrity_error_kind(e) == "unique":
                raise Conflict("Username or email already registered")
            logger.error(f"Error creating user {username}: {str(e)}")
            raise InfrastructureError(str(e)) from e
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error creating user {username}: {str(e)}")
            raise InfrastructureError(str(e)) from e

        db.refresh(db_user)
        logger.info(f"Created user {db_user.id}")
        return db_user

    @staticmethod
    def list_users(db: Session) -> List[Dict[str, Any]]:
        """List users without their credentials"""
        rows = db.execute(select(*PUBLIC_COLUMNS).order_by(User.username))
        return [dict(row) for row in rows.mappings()]

    @staticmethod
    def get_user(db: Session, user_id: uuid.UUID) -> User:
        user = db.get(User, user_id)
        if user is None:
            raise NotFound(USER_NOT_FOUND_MESSAGE)
        return user

    @staticmethod
    def get_user_by_username(db: Session, username: str) -> Optional[User]:
        return db.execute(
            select(User).where(User.username == username)
        ).scalar_one_or_none()

    @staticmethod
    def is_admin(db: Session, user_id: uuid.UUID) -> bool:
        """Read the admin flag straight from the store"""
        flag = db.execute(
            select(User.is_admin).where(User.id == user_id)
        ).scalar_one_or_none()
        return bool(flag)

    @staticmethod
    def authenticate(
        db: Session,
        credentials: CredentialStore,
        username: str,
        password: str,
    ) -> Optional[User]:
        """Return the user when username and password match, otherwise None"""
        user = UserService.get_user_by_username(db, username)
        if user is None or not credentials.verify(password, user.password):
            return None
        return user

    @staticmethod
    def update_user(
        db: Session,
        credentials: CredentialStore,
        user_id: uuid.UUID,
        patch: Patch,
    ) -> Dict[str, Any]:
        """Apply a partial update; a new password is hashed before it is stored"""
        try:
            return apply_patch(
                db,
                User.__table__,
                user_id,
                patch,
                UPDATABLE_FIELDS,
                transforms={"password": credentials.hash},
            )
        except NotFound:
            raise NotFound(USER_NOT_FOUND_MESSAGE)
        except Conflict:
            raise Conflict("Username or email already registered")

    @staticmethod
    def delete_user(db: Session, user_id: uuid.UUID) -> Dict[str, Any]:
        """
        Delete a user and return the deleted row.

        Favorites and the cart go with it through ON DELETE CASCADE.
        """
        table = User.__table__
        try:
            row = db.execute(
                delete(table).where(table.c.id == user_id).returning(*table.c)
            ).mappings().first()
            if row is None:
                db.rollback()
                raise NotFound(USER_NOT_FOUND_MESSAGE)
            deleted = dict(row)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error deleting user {user_id}: {str(e)}")
            raise InfrastructureError(str(e)) from e

        logger.info(f"Deleted user {user_id}")
        return deleted


user_service = UserService()
