# 📂 backend/fulfillment/services/orders.py — database access for fulfillment
# -----------------------------------------------------------------------------
# OrderStore is the only place that queries the storefront tables:
#   - get_panel_settings()    → settings singleton (panel API key + URL) or None
#   - get_order(order_id)     → order + product + pterodactyl_config, or None
#   - mark_provisioned(...)   → compare-and-swap: status='done' and the server uuid,
#                               only while pterodactyl_server_id IS NULL.
#
# On a database error the session is rolled back before the exception leaves,
# so callers that log-and-continue leave the request session usable.
# -----------------------------------------------------------------------------

from __future__ import annotations

from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from ..models import Order, OrderStatus, Product, SiteSettings


def completion_update(order_id: int, server_id: str):
    # the IS NULL guard makes a second writer match zero rows
    return (
        update(Order)
        .where(Order.id == order_id, Order.pterodactyl_server_id.is_(None))
        .values(
            status=OrderStatus.DONE.value,
            pterodactyl_server_id=server_id,
            updated_at=func.now(),
        )
    )


class OrderStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_panel_settings(self) -> Optional[SiteSettings]:
        try:
            res = await self.db.execute(select(SiteSettings).order_by(SiteSettings.id).limit(1))
            return res.scalars().first()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def get_order(self, order_id: int) -> Optional[Order]:
        stmt = (
            select(Order)
            .options(joinedload(Order.product).joinedload(Product.pterodactyl_config))
            .where(Order.id == order_id)
        )
        try:
            res = await self.db.execute(stmt)
            return res.scalars().first()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def mark_provisioned(self, order_id: int, server_id: str) -> bool:
        """
        True when this call wrote the server id. False means another request
        already stored one for the order (lost race).
        """
        stmt = completion_update(order_id, server_id)
        try:
            res = await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        return res.rowcount == 1
