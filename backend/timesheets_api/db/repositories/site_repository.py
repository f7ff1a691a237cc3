"""
Site repository for reference data and user assignments.
"""

from typing import Dict, Iterable, List, Optional, Set
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, insert

from timesheets_api.db.repositories.base_repository import BaseRepository
from timesheets_api.models.site import (
    Site,
    Department,
    PurchaseOrder,
    user_sites,
    user_departments,
    user_purchase_orders,
)


class SiteRepository(BaseRepository[Site]):
    """Repository for sites, departments, purchase orders and their assignment tables."""

    def __init__(self, session: AsyncSession):
        super().__init__(Site, session)

    async def list_sites(self, site_ids: Optional[Iterable[UUID]] = None) -> List[Site]:
        """List sites ordered by name; ``site_ids`` restricts the result."""
        query = select(Site)
        if site_ids is not None:
            site_ids = list(site_ids)
            if not site_ids:
                return []
            query = query.where(Site.id.in_(site_ids))
        result = await self.session.execute(query.order_by(Site.name))
        return list(result.scalars().all())

    async def site_ids_for_users(self, user_ids: Iterable[UUID]) -> Set[UUID]:
        """Site ids assigned to any of ``user_ids``."""
        user_ids = list(user_ids)
        if not user_ids:
            return set()
        result = await self.session.execute(
            select(user_sites.c.site_id).where(user_sites.c.user_id.in_(user_ids)).distinct()
        )
        return {row[0] for row in result.all()}

    async def get_departments(self, ids: Iterable[UUID]) -> List[Department]:
        ids = list(ids)
        if not ids:
            return []
        result = await self.session.execute(select(Department).where(Department.id.in_(ids)))
        return list(result.scalars().all())

    async def get_purchase_orders(self, ids: Iterable[UUID]) -> List[PurchaseOrder]:
        ids = list(ids)
        if not ids:
            return []
        result = await self.session.execute(select(PurchaseOrder).where(PurchaseOrder.id.in_(ids)))
        return list(result.scalars().all())

    async def get_user_assignments(self, user_id: UUID) -> Dict[str, List[UUID]]:
        """Site, department and purchase order ids assigned to a user."""
        sites = await self.session.execute(
            select(user_sites.c.site_id).where(user_sites.c.user_id == user_id)
        )
        departments = await self.session.execute(
            select(user_departments.c.department_id).where(user_departments.c.user_id == user_id)
        )
        purchase_orders = await self.session.execute(
            select(user_purchase_orders.c.purchase_order_id).where(user_purchase_orders.c.user_id == user_id)
        )
        return {
            "site_ids": [row[0] for row in sites.all()],
            "department_ids": [row[0] for row in departments.all()],
            "purchase_order_ids": [row[0] for row in purchase_orders.all()],
        }

    async def replace_user_assignments(
        self,
        user_id: UUID,
        site_ids: Iterable[UUID],
        department_ids: Iterable[UUID],
        purchase_order_ids: Iterable[UUID],
    ) -> None:
        """Replace every assignment row of a user."""
        await self.session.execute(delete(user_sites).where(user_sites.c.user_id == user_id))
        await self.session.execute(delete(user_departments).where(user_departments.c.user_id == user_id))
        await self.session.execute(delete(user_purchase_orders).where(user_purchase_orders.c.user_id == user_id))

        site_rows = [{"user_id": user_id, "site_id": i} for i in dict.fromkeys(site_ids)]
        department_rows = [{"user_id": user_id, "department_id": i} for i in dict.fromkeys(department_ids)]
        po_rows = [{"user_id": user_id, "purchase_order_id": i} for i in dict.fromkeys(purchase_order_ids)]
        if site_rows:
            await self.session.execute(insert(user_sites), site_rows)
        if department_rows:
            await self.session.execute(insert(user_departments), department_rows)
        if po_rows:
            await self.session.execute(insert(user_purchase_orders), po_rows)
        await self.session.flush()
