import uuid
from sqlalchemy import Boolean, Column, String, Text, Uuid
from storefront.core.database import Base


class User(Base):
    """
    User model representing storefront customers and administrators.

    The password column holds a bcrypt credential and is never part of an
    API response.
    """
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    # Username and email are unique and indexed for login and signup checks
    username = Column(String(255), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    address = Column(String(255), nullable=True)
    phone_number = Column(String(50), nullable=True)
    billing_info = Column(Text, nullable=True)
    # Read from the store on every admin check, never from the token
    is_admin = Column(Boolean, nullable=False, default=False)
