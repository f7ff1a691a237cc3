"""
User profile model: role and approval-chain relationships.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, Enum as SQLEnum, func
from sqlalchemy.dialects.postgresql import UUID
import enum

from timesheets_api.db.base import Base


class UserRole(str, enum.Enum):
    """User role enumeration."""
    EMPLOYEE = "employee"
    SUPERVISOR = "supervisor"
    MANAGER = "manager"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


ADMIN_ROLES = frozenset({UserRole.ADMIN, UserRole.SUPER_ADMIN})
APPROVER_ROLES = frozenset({UserRole.SUPERVISOR, UserRole.MANAGER, UserRole.ADMIN, UserRole.SUPER_ADMIN})

# Relation fields that place another user in this profile's approval chain
CHAIN_FIELDS = ("reports_to_id", "supervisor_id", "manager_id", "final_approver_id")


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Profile(Base):
    """Profile model - one per identity-provider account."""

    __tablename__ = "user_profiles"

    # Same id as the identity provider's user
    id = Column(UUID(as_uuid=True), primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    role = Column(
        SQLEnum(UserRole, name="user_role", values_callable=_enum_values),
        nullable=False,
        default=UserRole.EMPLOYEE,
        index=True,
    )

    reports_to_id = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True, index=True)
    supervisor_id = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True, index=True)
    manager_id = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True, index=True)
    final_approver_id = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    def __repr__(self) -> str:
        return f"<Profile {self.email} ({self.role.value if self.role else None})>"
