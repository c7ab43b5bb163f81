"""
用药历史仓储实现

历史记录只允许追加，更新和删除一律拒绝。
"""
from typing import Any, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, desc

from medimates.domain.errors import ConflictError
from medimates.infrastructure.database.repository.base import BaseRepository
from medimates.infrastructure.database.models.history import MedicationHistory


class HistoryRepository(BaseRepository[MedicationHistory]):
    """用药历史仓储类"""

    def __init__(self, session: AsyncSession):
        """
        初始化用药历史仓储

        Args:
            session: 数据库会话
        """
        super().__init__(session, MedicationHistory)

    async def append(
        self,
        user_id: str,
        medication_id: int,
        taken_date: str,
        taken_time: Optional[str],
        status: str,
        notes: Optional[str] = None,
        reminder_medication_id: Optional[int] = None
    ) -> MedicationHistory:
        """
        追加一条历史记录

        Returns:
            新建的历史记录
        """
        return await self.create(
            user_id=user_id,
            medication_id=medication_id,
            reminder_medication_id=reminder_medication_id,
            taken_date=taken_date,
            taken_time=taken_time,
            status=status,
            notes=notes,
        )

    async def update(self, id: Any, **kwargs) -> Optional[MedicationHistory]:
        raise ConflictError("用药历史记录不可修改", {"history_id": id})

    async def delete(self, id: Any) -> bool:
        raise ConflictError("用药历史记录不可删除", {"history_id": id})

    async def get_by_user_id(
        self,
        user_id: str,
        medication_id: Optional[int] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[MedicationHistory]:
        """
        查询用户的用药历史

        Args:
            user_id: 用户ID
            medication_id: 药品ID（可选）
            start_date: 开始日期（含，可选）
            end_date: 结束日期（含，可选）
            limit: 限制数量
            offset: 偏移量

        Returns:
            历史记录列表（按日期、时间倒序）
        """
        conditions = [MedicationHistory.user_id == user_id]
        if medication_id is not None:
            conditions.append(MedicationHistory.medication_id == medication_id)
        if start_date is not None:
            conditions.append(MedicationHistory.taken_date >= start_date)
        if end_date is not None:
            conditions.append(MedicationHistory.taken_date <= end_date)

        result = await self.session.execute(
            select(MedicationHistory)
            .where(and_(*conditions))
            .order_by(
                desc(MedicationHistory.taken_date),
                desc(MedicationHistory.taken_time),
                desc(MedicationHistory.id)
            )
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def get_by_entry(self, reminder_medication_id: int) -> List[MedicationHistory]:
        """查询某条提醒药品产生的全部历史记录"""
        result = await self.session.execute(
            select(MedicationHistory)
            .where(MedicationHistory.reminder_medication_id == reminder_medication_id)
            .order_by(MedicationHistory.id)
        )
        return list(result.scalars().all())
