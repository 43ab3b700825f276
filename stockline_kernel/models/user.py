"""
Module: stockline_kernel.models.user
Responsibility: ORM persistence for console users and their role.
    Credentials are held by the external identity provider; this table only
    records who a user is and what role they act in.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - email is unique (uq_user_email).
"""

from enum import Enum

from sqlalchemy import Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stockline_kernel.db.base import TrackedBase


class UserRole(str, Enum):
    """Console roles, most privileged first."""

    OWNER = "owner"
    MANAGER = "manager"
    STAFF = "staff"


class User(TrackedBase):
    """A console user."""

    __tablename__ = "users"

    __table_args__ = (
        UniqueConstraint("email", name="uq_user_email"),
    )

    email: Mapped[str] = mapped_column(String(255), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    role: Mapped[UserRole] = mapped_column(
        String(20),
        nullable=False,
        default=UserRole.STAFF,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"
