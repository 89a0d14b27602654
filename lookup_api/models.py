from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, false, func
from sqlalchemy.orm import deferred, relationship
from .db import Base
from .utils import utcnow

ACCOUNT_TABLE = "users_login"

ORDER_STATUSES = ("pending", "completed", "cancelled")


class Account(Base):
    __tablename__ = ACCOUNT_TABLE

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(132), nullable=False)
    email = Column(String(132), nullable=False, unique=True, index=True)
    # bcrypt/pbkdf2 hash. Null for accounts that only ever signed in with Google
    password = Column(String(255), nullable=True)
    is_verified = Column(Boolean, nullable=False, default=False, server_default=false())
    is_admin = Column(Boolean, nullable=False, default=False, server_default=false())
    reset_token = Column(String(255), nullable=True)
    reset_token_expires = Column(DateTime, nullable=True)
    verification_token = Column(String(255), nullable=True)
    verification_token_expires = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())
    google_id = Column(String(255), nullable=True, unique=True)
    # Optional in older deployments: never selected or written without a
    # SchemaCapabilities check, hence deferred and server-defaulted.
    session_active = deferred(Column(Boolean, nullable=False, server_default=false()))

    orders = relationship("Order", back_populates="account", passive_deletes=True)

    # No RETURNING of server defaults: it would name session_active in every INSERT
    __mapper_args__ = {"eager_defaults": False}


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(String(100), nullable=False, unique=True, index=True)
    user_id = Column(Integer, ForeignKey(f"{ACCOUNT_TABLE}.id", ondelete="SET NULL"), nullable=True, index=True)
    user_email = Column(String(132), nullable=True, index=True)
    company_cin = Column(String(64), nullable=False, index=True)
    company_name = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default="pending", server_default="pending", index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now(), onupdate=utcnow)

    account = relationship("Account", back_populates="orders")
