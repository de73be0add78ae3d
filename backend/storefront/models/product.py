import uuid
from sqlalchemy import CheckConstraint, Column, Numeric, String, Text, Uuid
from storefront.core.database import Base


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    # Fixed-point so prices never pick up float rounding
    price = Column(Numeric(10, 2), nullable=False)
    photo_url = Column(String(1024), nullable=False)
