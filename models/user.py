"""
User model: the Account record of the library catalogue.

Besides identity and role it holds the two single-slot credential fields:
- refresh_token: the one refresh token currently honoured for this account
- reset_code_hash / reset_code_expires_at: the outstanding password-reset challenge
Both are overwritten, never appended to.
"""
from sqlalchemy import Column, String, Text, DateTime, CheckConstraint

from models.base_model import BaseModel, Base

ROLES = ("user", "admin")


class User(BaseModel, Base):
    __tablename__ = "users"

    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="user")
    refresh_token = Column(Text, nullable=True)
    reset_code_hash = Column(String(255), nullable=True)
    reset_code_expires_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("role IN ('user', 'admin')", name="ck_users_role"),
    )

    def __repr__(self):
        return f"<User {self.id} {self.email} role={self.role}>"
