import uuid
from sqlalchemy import Column, ForeignKey, UniqueConstraint, Uuid
from storefront.core.database import Base


class Favorite(Base):
    """
    A product a user has marked as favorite.

    Favorites are never updated: remove and create again instead.
    """
    __tablename__ = "favorites"
    # A user can favorite a given product only once
    __table_args__ = (
        UniqueConstraint("user_id", "product_id", name="uq_favorites_user_product"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"),
                     nullable=False, index=True)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"),
                        nullable=False)
