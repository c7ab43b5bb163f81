"""
药品仓储实现
"""
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, exists

from medimates.infrastructure.database.repository.base import BaseRepository
from medimates.infrastructure.database.models.medication import Medication
from medimates.infrastructure.database.models.reminder import ReminderMedication
from medimates.infrastructure.database.models.history import MedicationHistory


class MedicationRepository(BaseRepository[Medication]):
    """药品仓储类"""

    def __init__(self, session: AsyncSession):
        """
        初始化药品仓储

        Args:
            session: 数据库会话
        """
        super().__init__(session, Medication)

    async def get_by_user_id(
        self,
        user_id: str,
        limit: int = 100,
        offset: int = 0
    ) -> List[Medication]:
        """
        根据用户ID查询药品

        Args:
            user_id: 用户ID
            limit: 限制数量
            offset: 偏移量

        Returns:
            药品列表（按名称排序）
        """
        result = await self.session.execute(
            select(Medication)
            .where(Medication.user_id == user_id)
            .order_by(Medication.name, Medication.id)
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def get_owned(self, medication_id: int, user_id: str) -> Optional[Medication]:
        """
        查询属于指定用户的药品

        Args:
            medication_id: 药品ID
            user_id: 用户ID

        Returns:
            药品，不存在或不属于该用户时返回 None
        """
        result = await self.session.execute(
            select(Medication)
            .where(
                and_(
                    Medication.id == medication_id,
                    Medication.user_id == user_id
                )
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def is_referenced(self, medication_id: int) -> bool:
        """药品是否仍被提醒或用药历史引用"""
        result = await self.session.execute(
            select(
                exists().where(ReminderMedication.medication_id == medication_id)
                | exists().where(MedicationHistory.medication_id == medication_id)
            )
        )
        return bool(result.scalar())
