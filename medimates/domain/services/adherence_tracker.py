"""
依从性跟踪服务

剂量状态机：pending -> taken | skipped | missed。
状态变更后重新计算提醒的汇总状态；变为 taken 时追加用药历史并扣减一次库存。
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from medimates.app.config import settings
from medimates.domain.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from medimates.domain.outcome import AdherenceSummary, MedicationAdherence, StatusChange
from medimates.domain.services.medication_catalog import MedicationCatalog
from medimates.domain.temporal import normalize_date
from medimates.infrastructure.database.models import (
    DoseStatus,
    MedicationHistory,
    ReminderStatus,
    TERMINAL_STATUSES,
)
from medimates.infrastructure.database.models.medication import utcnow
from medimates.infrastructure.database.repository import (
    HistoryRepository,
    MedicationRepository,
    ReminderRepository,
)

logger = logging.getLogger(__name__)


def parse_dose_status(value: Any) -> DoseStatus:
    if isinstance(value, DoseStatus):
        return value
    try:
        return DoseStatus(value)
    except ValueError:
        raise ValidationError(
            f"不支持的剂量状态: {value}",
            {"status": value, "allowed": [s.value for s in DoseStatus]}
        )


class AdherenceTracker:
    """依从性跟踪器"""

    def __init__(self, session: AsyncSession):
        """
        初始化依从性跟踪器

        Args:
            session: 数据库会话
        """
        self.session = session
        self.reminders = ReminderRepository(session)
        self.history = HistoryRepository(session)
        self.medications = MedicationRepository(session)
        self.catalog = MedicationCatalog(session)

    async def set_status(
        self,
        reminder_id: int,
        reminder_medication_id: int,
        user_id: str,
        status: Any,
        notes: Optional[str] = None
    ) -> StatusChange:
        """
        变更一次剂量的状态

        步骤：
        1. 加锁读取提醒，校验存在且属于该用户
        2. 更新状态和备注；仅 taken 时记录服用时间，其余状态清空
        3. taken 时追加用药历史并扣减一次库存（库存不足时截断为 0，不影响本次变更）
        4. 所有剂量都进入终态时提醒变为 completed，否则为 pending

        Args:
            reminder_id: 提醒ID
            reminder_medication_id: 提醒药品ID
            user_id: 用户ID
            status: 新状态（pending/taken/skipped/missed）
            notes: 备注（不传则保留原备注）

        Returns:
            StatusChange，其中 reminder_completed 为提醒是否已完成

        Raises:
            ValidationError: 状态不在取值范围内
            NotFoundError: 提醒不存在，或该提醒下没有这条药品
            AuthorizationError: 提醒不属于该用户
            ConflictError: 已关闭状态回退时，剂量已处于其他终态
        """
        new_status = parse_dose_status(status)

        # 锁住父提醒，保证同一提醒下并发的状态变更看到彼此的结果后再重算汇总状态
        reminder = await self.reminders.get_for_update(reminder_id)
        if reminder is None:
            raise NotFoundError(f"提醒不存在: {reminder_id}", {"reminder_id": reminder_id})
        if reminder.user_id != user_id:
            raise AuthorizationError("无权修改该提醒", {"reminder_id": reminder_id})

        entry = await self.reminders.get_entry(reminder_id, reminder_medication_id)
        if entry is None:
            raise NotFoundError(
                f"提醒药品不存在: {reminder_medication_id}",
                {"reminder_id": reminder_id, "reminder_medication_id": reminder_medication_id}
            )
        if not settings.ALLOW_STATUS_REVERSAL and entry.is_terminal and entry.status != new_status:
            raise ConflictError(
                f"剂量已处于终态 {entry.status.value}，不允许再修改",
                {"reminder_medication_id": reminder_medication_id, "status": entry.status.value}
            )

        previous_status = entry.status
        entry.status = new_status
        entry.taken_at = utcnow() if new_status == DoseStatus.TAKEN else None
        if notes is not None:
            entry.notes = notes
        await self.session.flush()

        remaining_quantity = None
        history_id = None
        if new_status == DoseStatus.TAKEN:
            record = await self.history.append(
                user_id=user_id,
                medication_id=entry.medication_id,
                taken_date=reminder.date,
                taken_time=entry.schedule_time,
                status=DoseStatus.TAKEN.value,
                notes=entry.notes,
                reminder_medication_id=entry.id,
            )
            history_id = record.id
            remaining_quantity = await self.catalog.adjust_inventory(entry.medication_id, -1)

        statuses = await self.reminders.get_entry_statuses(reminder_id)
        completed = bool(statuses) and all(s in TERMINAL_STATUSES for s in statuses)
        reminder.status = ReminderStatus.COMPLETED if completed else ReminderStatus.PENDING
        await self.session.flush()

        logger.info(
            f"剂量状态已更新: reminder_id={reminder_id}, reminder_medication_id={reminder_medication_id}, "
            f"{previous_status.value} -> {new_status.value}, reminder_completed={completed}"
        )
        return StatusChange(
            reminder=reminder,
            entry=entry,
            reminder_completed=completed,
            remaining_quantity=remaining_quantity,
            history_id=history_id,
        )

    async def list_history(
        self,
        user_id: str,
        medication_id: Optional[int] = None,
        start_date: Optional[Any] = None,
        end_date: Optional[Any] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[MedicationHistory]:
        """查询用药历史，按日期、时间倒序"""
        return await self.history.get_by_user_id(
            user_id,
            medication_id=medication_id,
            start_date=normalize_date(start_date) if start_date else None,
            end_date=normalize_date(end_date) if end_date else None,
            limit=limit,
            offset=offset,
        )

    async def summarize(self, user_id: str, start_date: Any, end_date: Any) -> AdherenceSummary:
        """
        统计日期区间（含两端）内各状态的剂量数量及依从率

        Args:
            user_id: 用户ID
            start_date: 开始日期
            end_date: 结束日期

        Returns:
            AdherenceSummary，含按药品的明细

        Raises:
            ValidationError: 结束日期早于开始日期
        """
        start = normalize_date(start_date)
        end = normalize_date(end_date)
        if end < start:
            raise ValidationError("结束日期不能早于开始日期", {"start_date": start, "end_date": end})

        counts = await self.reminders.count_statuses(user_id, start, end)

        totals: Dict[DoseStatus, int] = {status: 0 for status in DoseStatus}
        per_medication: Dict[int, Dict[DoseStatus, int]] = {}
        for (medication_id, status), count in counts.items():
            totals[status] += count
            per_medication.setdefault(medication_id, {s: 0 for s in DoseStatus})[status] += count

        medications = []
        for medication_id in sorted(per_medication):
            medication = await self.medications.get_by_id(medication_id)
            medications.append(MedicationAdherence(
                medication_id=medication_id,
                name=medication.name if medication else None,
                counts=per_medication[medication_id],
            ))

        return AdherenceSummary(start_date=start, end_date=end, counts=totals, medications=medications)
