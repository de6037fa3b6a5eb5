"""ORM model for bank customers (credentials, balance and role)."""

from decimal import Decimal

from sqlalchemy import Column, Numeric, String, UniqueConstraint
from sqlalchemy.orm import relationship

from kodbank.models.base import Base

DEFAULT_ROLE = "customer"
STARTING_BALANCE = Decimal("100000.00")


class User(Base):
    """
    Registered account. Username and email are unique; email is stored lowercased.

    role: 'customer' or 'admin'
    """

    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("email"),)

    uid = Column(String(36), primary_key=True)
    username = Column(String(50), nullable=False, unique=True, index=True)
    email = Column(String(100), nullable=False)
    password_hash = Column(String(255), nullable=False)
    balance = Column(
        Numeric(15, 2),
        nullable=False,
        default=STARTING_BALANCE,
        server_default=str(STARTING_BALANCE),
    )
    phone = Column(String(20), nullable=True)
    role = Column(String(20), nullable=False, default=DEFAULT_ROLE, server_default=DEFAULT_ROLE)

    tokens = relationship(
        "UserToken",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
