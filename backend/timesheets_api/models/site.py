"""
Organisation reference data (sites, departments, purchase orders) and the
user assignment tables used for site scoping.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, Table, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
import uuid

from timesheets_api.db.base import Base


user_sites = Table(
    "user_sites",
    Base.metadata,
    Column("user_id", UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="CASCADE"), primary_key=True),
    Column("site_id", UUID(as_uuid=True), ForeignKey("sites.id", ondelete="CASCADE"), primary_key=True),
)

user_departments = Table(
    "user_departments",
    Base.metadata,
    Column("user_id", UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="CASCADE"), primary_key=True),
    Column("department_id", UUID(as_uuid=True), ForeignKey("departments.id", ondelete="CASCADE"), primary_key=True),
)

user_purchase_orders = Table(
    "user_purchase_orders",
    Base.metadata,
    Column("user_id", UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="CASCADE"), primary_key=True),
    Column("purchase_order_id", UUID(as_uuid=True), ForeignKey("purchase_orders.id", ondelete="CASCADE"), primary_key=True),
)


class Site(Base):
    """Client site / project location."""

    __tablename__ = "sites"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    name = Column(String(200), nullable=False)
    code = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    departments = relationship("Department", back_populates="site", cascade="all, delete-orphan")


class Department(Base):
    """Department within a site."""

    __tablename__ = "departments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    site_id = Column(UUID(as_uuid=True), ForeignKey("sites.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)

    site = relationship("Site", back_populates="departments")


class PurchaseOrder(Base):
    """Purchase order billed against a site (optionally a department)."""

    __tablename__ = "purchase_orders"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    po_number = Column(String(100), nullable=False, index=True)
    description = Column(String(500), nullable=True)
    site_id = Column(UUID(as_uuid=True), ForeignKey("sites.id", ondelete="CASCADE"), nullable=False, index=True)
    department_id = Column(UUID(as_uuid=True), ForeignKey("departments.id", ondelete="SET NULL"), nullable=True, index=True)
