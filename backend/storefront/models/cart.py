import uuid
from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from storefront.core.database import Base


class Cart(Base):
    """Shopping cart, one per user"""
    __tablename__ = "carts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"),
                     nullable=False, unique=True)

    # passive_deletes lets the database cascade remove the items
    items = relationship("CartItem", backref="cart", passive_deletes=True)


class CartItem(Base):
    __tablename__ = "cart_items"
    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", name="uq_cart_items_cart_product"),
        CheckConstraint("quantity > 0", name="ck_cart_items_quantity_positive"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    cart_id = Column(Uuid, ForeignKey("carts.id", ondelete="CASCADE"),
                     nullable=False, index=True)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"),
                        nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
