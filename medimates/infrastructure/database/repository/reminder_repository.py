"""
提醒仓储实现
"""
from typing import Dict, List, Optional, Set, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, asc, desc, func

from medimates.infrastructure.database.repository.base import BaseRepository
from medimates.infrastructure.database.models.reminder import (
    DoseStatus,
    Reminder,
    ReminderMedication,
    ReminderStatus,
)


class ReminderRepository(BaseRepository[Reminder]):
    """提醒仓储类"""

    def __init__(self, session: AsyncSession):
        """
        初始化提醒仓储

        Args:
            session: 数据库会话
        """
        super().__init__(session, Reminder)

    async def get_page(
        self,
        user_id: str,
        date: Optional[str] = None,
        status: Optional[ReminderStatus] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[Reminder]:
        """
        分页查询用户的提醒

        Args:
            user_id: 用户ID
            date: 规范日期（精确匹配，可选）
            status: 汇总状态（可选）
            limit: 限制数量
            offset: 偏移量

        Returns:
            提醒列表（按日期倒序、时间正序）
        """
        conditions = [Reminder.user_id == user_id]
        if date is not None:
            conditions.append(Reminder.date == date)
        if status is not None:
            conditions.append(Reminder.status == status)

        result = await self.session.execute(
            select(Reminder)
            .where(and_(*conditions))
            .order_by(desc(Reminder.date), asc(Reminder.time), asc(Reminder.id))
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def get_for_update(self, reminder_id: int) -> Optional[Reminder]:
        """
        查询提醒并加行锁（SELECT ... FOR UPDATE），同一提醒上的状态变更依次执行

        SQLite 不支持行级锁，写事务本身已串行，该子句在 SQLite 上被忽略。

        Args:
            reminder_id: 提醒ID

        Returns:
            提醒，不存在时返回 None
        """
        result = await self.session.execute(
            select(Reminder)
            .where(Reminder.id == reminder_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_entry(self, reminder_id: int, entry_id: int) -> Optional[ReminderMedication]:
        """
        查询提醒下的某条提醒药品

        Args:
            reminder_id: 提醒ID
            entry_id: 提醒药品ID

        Returns:
            提醒药品，不存在或不属于该提醒时返回 None
        """
        result = await self.session.execute(
            select(ReminderMedication).where(
                and_(
                    ReminderMedication.id == entry_id,
                    ReminderMedication.reminder_id == reminder_id
                )
            )
        )
        return result.scalar_one_or_none()

    async def get_entry_statuses(self, reminder_id: int) -> List[DoseStatus]:
        """查询提醒下全部剂量的当前状态（直接读库，不依赖会话缓存）"""
        result = await self.session.execute(
            select(ReminderMedication.status).where(ReminderMedication.reminder_id == reminder_id)
        )
        return list(result.scalars().all())

    async def get_with_entries(self, reminder_id: int) -> Optional[Reminder]:
        """
        查询提醒及其全部提醒药品（强制从数据库刷新，包含同一事务中新写入的子记录）

        Args:
            reminder_id: 提醒ID

        Returns:
            提醒，不存在时返回 None
        """
        result = await self.session.execute(
            select(Reminder)
            .where(Reminder.id == reminder_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_materialized_time_ids(self, user_id: str, date: str) -> Set[int]:
        """
        查询某天已按计划生成过的时间槽ID，用于重复生成时去重

        Args:
            user_id: 用户ID
            date: 规范日期

        Returns:
            time_id 集合（手动创建的提醒药品没有 time_id，不计入）
        """
        result = await self.session.execute(
            select(ReminderMedication.time_id)
            .join(Reminder, Reminder.id == ReminderMedication.reminder_id)
            .where(
                and_(
                    Reminder.user_id == user_id,
                    Reminder.date == date,
                    ReminderMedication.time_id.is_not(None)
                )
            )
        )
        return set(result.scalars().all())

    async def count_statuses(
        self,
        user_id: str,
        start_date: str,
        end_date: str
    ) -> Dict[Tuple[int, DoseStatus], int]:
        """
        统计日期范围内每个药品各状态的剂量数量

        Args:
            user_id: 用户ID
            start_date: 开始日期（含）
            end_date: 结束日期（含）

        Returns:
            {(medication_id, status): count}
        """
        result = await self.session.execute(
            select(
                ReminderMedication.medication_id,
                ReminderMedication.status,
                func.count(ReminderMedication.id).label("count"),
            )
            .join(Reminder, Reminder.id == ReminderMedication.reminder_id)
            .where(
                and_(
                    Reminder.user_id == user_id,
                    Reminder.date >= start_date,
                    Reminder.date <= end_date
                )
            )
            .group_by(ReminderMedication.medication_id, ReminderMedication.status)
        )
        return {(row.medication_id, DoseStatus(row.status)): row.count for row in result}
