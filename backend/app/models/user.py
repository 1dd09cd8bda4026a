"""
User database model.

Portal staff accounts: admins, operations officers and sales agents.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.enums import UserRole


class User(Base):
    """
    Staff account used to sign in to the portal.

    Accounts are never removed; deactivation flips ``is_active``.
    Only one refresh token is kept per user, so a new login invalidates
    the previous session's refresh token.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    name = Column(String(100), nullable=False)
    phone = Column(String(30), nullable=True)

    role = Column(Enum(UserRole), default=UserRole.SALES_AGENT, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    refresh_token = Column(String(1024), nullable=True)
    last_login = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role.value}', active={self.is_active})>"
