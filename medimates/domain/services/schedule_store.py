"""
用药计划服务

计划与其时间槽作为一个整体创建和更新。修改计划不会回溯修改已经生成的提醒。
"""
import logging
from typing import Any, List, Mapping, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from medimates.domain.errors import ConflictError, NotFoundError, ValidationError
from medimates.domain.temporal import normalize_date, normalize_time, today
from medimates.infrastructure.database.models import Frequency, MedicationSchedule, MedicationTime
from medimates.infrastructure.database.repository import MedicationRepository, ScheduleRepository

logger = logging.getLogger(__name__)

# 只给出时段标签时使用的默认时间
TIME_OF_DAY_DEFAULTS = {
    "morning": "08:00:00",
    "noon": "12:00:00",
    "afternoon": "15:00:00",
    "evening": "18:00:00",
    "night": "21:00:00",
}


def parse_frequency(value: Any) -> Frequency:
    if isinstance(value, Frequency):
        return value
    try:
        return Frequency(value)
    except ValueError:
        raise ValidationError(
            f"不支持的用药频率: {value}",
            {"frequency": value, "allowed": [f.value for f in Frequency]}
        )


def build_time_slots(frequency: Frequency, slots: Optional[Sequence[Mapping[str, Any]]]) -> List[MedicationTime]:
    """
    校验并构建时间槽

    Args:
        frequency: 用药频率
        slots: 时间槽输入，每项包含 time_of_day / specific_time / dosage

    Returns:
        未持久化的时间槽列表

    Raises:
        ValidationError: 非按需计划没有时间槽，或时间槽既无时间也无可识别的时段
        ConflictError: 同一计划内时间重复
    """
    slots = list(slots or [])
    if not slots and frequency != Frequency.AS_NEEDED:
        raise ValidationError("除按需用药外，计划至少需要一个时间槽", {"frequency": frequency.value})

    times: List[MedicationTime] = []
    seen = set()
    for index, slot in enumerate(slots):
        time_of_day = slot.get("time_of_day")
        specific_time = slot.get("specific_time")
        if specific_time:
            specific_time = normalize_time(specific_time)
        elif time_of_day in TIME_OF_DAY_DEFAULTS and frequency != Frequency.AS_NEEDED:
            specific_time = TIME_OF_DAY_DEFAULTS[time_of_day]
        elif frequency != Frequency.AS_NEEDED:
            raise ValidationError(
                "时间槽缺少具体时间",
                {"index": index, "time_of_day": time_of_day}
            )
        else:
            specific_time = None

        if specific_time is not None:
            if specific_time in seen:
                raise ConflictError(
                    f"同一计划内的服药时间重复: {specific_time}",
                    {"index": index, "specific_time": specific_time}
                )
            seen.add(specific_time)

        times.append(MedicationTime(
            time_of_day=time_of_day,
            specific_time=specific_time,
            dosage=slot.get("dosage"),
        ))
    return times


def _check_date_range(start_date: str, end_date: Optional[str]) -> None:
    if end_date is not None and end_date < start_date:
        raise ValidationError(
            "结束日期不能早于开始日期",
            {"start_date": start_date, "end_date": end_date}
        )


class ScheduleStore:
    """用药计划存储"""

    def __init__(self, session: AsyncSession):
        """
        初始化计划存储

        Args:
            session: 数据库会话
        """
        self.session = session
        self.schedules = ScheduleRepository(session)
        self.medications = MedicationRepository(session)

    async def _require_medication(self, medication_id: int, user_id: str) -> None:
        if await self.medications.get_owned(medication_id, user_id) is None:
            raise NotFoundError(f"药品不存在: {medication_id}", {"medication_id": medication_id})

    async def create_schedule(
        self,
        medication_id: int,
        user_id: str,
        frequency: Any = Frequency.DAILY,
        start_date: Optional[Any] = None,
        end_date: Optional[Any] = None,
        time_slots: Optional[Sequence[Mapping[str, Any]]] = None,
        notes: Optional[str] = None,
        when_to_take: Optional[str] = None
    ) -> MedicationSchedule:
        """
        创建计划及其时间槽

        Args:
            medication_id: 药品ID
            user_id: 用户ID
            frequency: 用药频率
            start_date: 开始日期（默认今天）
            end_date: 结束日期（含当天，可选）
            time_slots: 时间槽列表
            notes: 备注
            when_to_take: 服用时机

        Returns:
            新建的计划

        Raises:
            NotFoundError: 药品不存在或不属于该用户
            ValidationError: 频率、日期或时间槽不合法
            ConflictError: 时间槽重复
        """
        await self._require_medication(medication_id, user_id)

        frequency = parse_frequency(frequency or Frequency.DAILY)
        start = normalize_date(start_date) if start_date else today()
        end = normalize_date(end_date) if end_date else None
        _check_date_range(start, end)
        times = build_time_slots(frequency, time_slots)

        schedule = MedicationSchedule(
            medication_id=medication_id,
            frequency=frequency,
            start_date=start,
            end_date=end,
            when_to_take=when_to_take,
            notes=notes,
            times=times,
        )
        self.session.add(schedule)
        await self.session.flush()
        logger.info(
            f"创建用药计划成功: medication_id={medication_id}, schedule_id={schedule.id}, "
            f"frequency={frequency.value}, slots={len(times)}"
        )
        return await self.get_schedule(schedule.id, user_id)

    async def update_schedule(
        self,
        schedule_id: int,
        user_id: str,
        patch: Mapping[str, Any]
    ) -> MedicationSchedule:
        """
        部分更新计划；给出 time_slots 时整体替换时间槽

        已生成的提醒不受影响。

        Raises:
            NotFoundError: 计划不存在或不属于该用户
            ValidationError: 更新后的频率、日期或时间槽不合法
            ConflictError: 时间槽重复
        """
        schedule = await self.get_schedule(schedule_id, user_id)

        frequency = parse_frequency(patch["frequency"]) if patch.get("frequency") else schedule.frequency
        start = normalize_date(patch["start_date"]) if patch.get("start_date") else schedule.start_date
        if "end_date" in patch:
            end = normalize_date(patch["end_date"]) if patch["end_date"] else None
        else:
            end = schedule.end_date
        _check_date_range(start, end)

        if "time_slots" in patch and patch["time_slots"] is not None:
            times = build_time_slots(frequency, patch["time_slots"])
        else:
            # 频率变化时，现有时间槽也必须满足新频率的要求
            current = [
                {"time_of_day": t.time_of_day, "specific_time": t.specific_time, "dosage": t.dosage}
                for t in schedule.times
            ]
            build_time_slots(frequency, current)
            times = None

        schedule.frequency = frequency
        schedule.start_date = start
        schedule.end_date = end
        for key in ("when_to_take", "notes"):
            if key in patch:
                setattr(schedule, key, patch[key])
        if times is not None:
            schedule.times = times

        await self.session.flush()
        logger.info(f"更新用药计划成功: schedule_id={schedule_id}, replaced_slots={times is not None}")
        return await self.get_schedule(schedule_id, user_id)

    async def get_schedule(self, schedule_id: int, user_id: str) -> MedicationSchedule:
        schedule = await self.schedules.get_owned(schedule_id, user_id)
        if schedule is None:
            raise NotFoundError(f"用药计划不存在: {schedule_id}", {"schedule_id": schedule_id})
        return schedule

    async def list_schedules(self, medication_id: int, user_id: str) -> List[MedicationSchedule]:
        """查询药品的全部计划"""
        await self._require_medication(medication_id, user_id)
        return await self.schedules.get_by_medication_id(medication_id)

    async def active_schedules_on(self, user_id: str, date: Any) -> List[MedicationSchedule]:
        """
        查询某天处于有效期内的计划（不判断频率是否命中，按需计划除外）

        Args:
            user_id: 用户ID
            date: 日期

        Returns:
            计划列表
        """
        return await self.schedules.get_active_on(user_id, normalize_date(date))

