"""
药品库存仓储实现
"""
import logging
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, case
from sqlalchemy.exc import IntegrityError

from medimates.infrastructure.database.repository.base import BaseRepository
from medimates.infrastructure.database.models.medication import MedicationInventory, utcnow

logger = logging.getLogger(__name__)


class InventoryRepository(BaseRepository[MedicationInventory]):
    """药品库存仓储类"""

    def __init__(self, session: AsyncSession):
        """
        初始化库存仓储

        Args:
            session: 数据库会话
        """
        super().__init__(session, MedicationInventory)

    async def get_by_medication_id(self, medication_id: int) -> Optional[MedicationInventory]:
        """
        根据药品ID查询库存（强制从数据库刷新，避免读到原子更新前的旧值）

        Args:
            medication_id: 药品ID

        Returns:
            库存记录，不存在时返回 None
        """
        result = await self.session.execute(
            select(MedicationInventory)
            .where(MedicationInventory.medication_id == medication_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _atomic_adjust(self, medication_id: int, delta: int) -> Optional[int]:
        """
        单条 UPDATE 语句完成增减，低于 0 时截断为 0

        行锁由数据库在 UPDATE 时持有直到事务结束，并发扣减按行串行化，不会丢失更新。

        Returns:
            调整后的数量，库存记录不存在时返回 None
        """
        new_quantity = MedicationInventory.remaining_quantity + delta
        result = await self.session.execute(
            update(MedicationInventory)
            .where(MedicationInventory.medication_id == medication_id)
            .values(
                remaining_quantity=case((new_quantity < 0, 0), else_=new_quantity),
                updated_at=utcnow(),
            )
            .returning(MedicationInventory.remaining_quantity)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none()

    async def adjust_quantity(
        self,
        medication_id: int,
        delta: int,
        default_unit: str,
        default_threshold: int
    ) -> int:
        """
        原子地调整库存数量；首次使用时自动创建库存记录

        Args:
            medication_id: 药品ID
            delta: 增减量（负数为扣减）
            default_unit: 新建库存记录时的单位
            default_threshold: 新建库存记录时的补药阈值

        Returns:
            调整后的数量（>= 0）
        """
        quantity = await self._atomic_adjust(medication_id, delta)
        if quantity is not None:
            return quantity

        try:
            async with self.session.begin_nested():
                inventory = MedicationInventory(
                    medication_id=medication_id,
                    remaining_quantity=max(0, delta),
                    unit=default_unit,
                    refill_threshold=default_threshold,
                )
                self.session.add(inventory)
            return inventory.remaining_quantity
        except IntegrityError:
            # 并发请求已先创建了库存记录，改走原子更新
            logger.info(f"库存记录已被并发创建，重试原子更新: medication_id={medication_id}")
            quantity = await self._atomic_adjust(medication_id, delta)
            return quantity if quantity is not None else 0
