"""
用药计划仓储实现
"""
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, or_

from medimates.infrastructure.database.repository.base import BaseRepository
from medimates.infrastructure.database.models.medication import Medication
from medimates.infrastructure.database.models.schedule import Frequency, MedicationSchedule


class ScheduleRepository(BaseRepository[MedicationSchedule]):
    """用药计划仓储类"""

    def __init__(self, session: AsyncSession):
        """
        初始化用药计划仓储

        Args:
            session: 数据库会话
        """
        super().__init__(session, MedicationSchedule)

    async def get_by_medication_id(self, medication_id: int) -> List[MedicationSchedule]:
        """
        查询药品的全部计划

        Args:
            medication_id: 药品ID

        Returns:
            计划列表（按创建顺序）
        """
        result = await self.session.execute(
            select(MedicationSchedule)
            .where(MedicationSchedule.medication_id == medication_id)
            .order_by(MedicationSchedule.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_owned(self, schedule_id: int, user_id: str) -> Optional[MedicationSchedule]:
        """
        查询属于指定用户的计划（通过所属药品判断归属）

        Args:
            schedule_id: 计划ID
            user_id: 用户ID

        Returns:
            计划，不存在或不属于该用户时返回 None
        """
        result = await self.session.execute(
            select(MedicationSchedule)
            .join(Medication, Medication.id == MedicationSchedule.medication_id)
            .where(
                and_(
                    MedicationSchedule.id == schedule_id,
                    Medication.user_id == user_id
                )
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_active_on(self, user_id: str, date: str) -> List[MedicationSchedule]:
        """
        查询某天处于有效期内的计划（不含按需计划）

        日期均为 YYYY-MM-DD 字符串，字典序即日历顺序。

        Args:
            user_id: 用户ID
            date: 规范日期

        Returns:
            计划列表（按药品、计划ID排序）
        """
        result = await self.session.execute(
            select(MedicationSchedule)
            .join(Medication, Medication.id == MedicationSchedule.medication_id)
            .where(
                and_(
                    Medication.user_id == user_id,
                    MedicationSchedule.frequency != Frequency.AS_NEEDED,
                    MedicationSchedule.start_date <= date,
                    or_(
                        MedicationSchedule.end_date.is_(None),
                        MedicationSchedule.end_date >= date
                    )
                )
            )
            .order_by(MedicationSchedule.medication_id, MedicationSchedule.id)
        )
        return list(result.scalars().all())
