"""
User model.

WHY: Users are the actors of every ticket operation. Their role decides
what they may read and change; the helpdesk does not manage credentials,
which live with the auth service that issues tokens.
"""

import enum
from sqlalchemy import Column, String, Enum, Boolean

from helpdesk.models.base import Base, TimestampMixin, PrimaryKeyMixin


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    WHY: A closed set of roles makes every capability check an enum
    comparison instead of a free-form string match.
    """

    ADMIN = "admin"
    AGENT = "agent"
    CUSTOMER = "customer"
    SUPER_ADMIN = "super_admin"


class User(Base, PrimaryKeyMixin, TimestampMixin):
    """
    User model representing customers, support agents and administrators.
    """

    __tablename__ = "users"

    email = Column(String(255), unique=True, index=True, nullable=False)
    first_name = Column(String(100), nullable=False, default="")
    last_name = Column(String(100), nullable=False, default="")

    role = Column(
        Enum(UserRole, name="userrole", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=UserRole.CUSTOMER,
    )

    # WHY: is_active lets the auth layer lock an account without losing
    # the tickets and events that reference it
    is_active = Column(Boolean, default=True, nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role={self.role})>"
