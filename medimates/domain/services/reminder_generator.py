"""
提醒生成服务

提醒是某用户某一天待服剂量的容器，可以手动创建，也可以按计划生成。
提醒一经创建不会被重新生成，之后只有剂量状态会变化。
"""
import logging
from typing import Any, AsyncIterator, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from medimates.app.config import settings
from medimates.domain.errors import (
    AuthorizationError,
    DomainError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from medimates.domain.outcome import EntryOutcome, GenerationResult, ReminderCreation
from medimates.domain.services.schedule_store import ScheduleStore
from medimates.domain.temporal import (
    day_of_month,
    days_between,
    iter_dates,
    normalize_date,
    normalize_time,
)
from medimates.infrastructure.database.models import (
    DoseStatus,
    Frequency,
    MedicationSchedule,
    MedicationTime,
    Reminder,
    ReminderMedication,
    ReminderStatus,
)
from medimates.infrastructure.database.repository import MedicationRepository, ReminderRepository

logger = logging.getLogger(__name__)


def occurs_on(frequency: Frequency, start_date: str, date: str) -> bool:
    """
    判断计划在某天是否需要服药

    每周按开始日期所在的星期几；每月按开始日期的日号，当月没有该日则不服药。
    """
    offset = days_between(start_date, date)
    if offset < 0:
        return False
    if frequency == Frequency.DAILY:
        return True
    if frequency == Frequency.EVERY_OTHER_DAY:
        return offset % 2 == 0
    if frequency == Frequency.WEEKLY:
        return offset % 7 == 0
    if frequency == Frequency.MONTHLY:
        return day_of_month(date) == day_of_month(start_date)
    return False


def parse_reminder_status(value: Any) -> ReminderStatus:
    try:
        return ReminderStatus(value)
    except ValueError:
        raise ValidationError(
            f"不支持的提醒状态: {value}",
            {"status": value, "allowed": [s.value for s in ReminderStatus]}
        )


class ReminderStream:
    """
    提醒的惰性查询序列

    按批次分页读取，每次迭代都从头重新查询，可重复遍历。只读，不修改任何状态。
    """

    def __init__(
        self,
        repository: ReminderRepository,
        user_id: str,
        date: Optional[str] = None,
        status: Optional[ReminderStatus] = None,
        batch_size: int = 100
    ):
        self.repository = repository
        self.user_id = user_id
        self.date = date
        self.status = status
        self.batch_size = batch_size

    def __aiter__(self) -> AsyncIterator[Reminder]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Reminder]:
        offset = 0
        while True:
            batch = await self.repository.get_page(
                self.user_id,
                date=self.date,
                status=self.status,
                limit=self.batch_size,
                offset=offset,
            )
            for reminder in batch:
                yield reminder
            if len(batch) < self.batch_size:
                return
            offset += self.batch_size

    async def to_list(self) -> List[Reminder]:
        return [reminder async for reminder in self]


class ReminderGenerator:
    """提醒生成器"""

    def __init__(self, session: AsyncSession):
        """
        初始化提醒生成器

        Args:
            session: 数据库会话
        """
        self.session = session
        self.reminders = ReminderRepository(session)
        self.medications = MedicationRepository(session)
        self.schedule_store = ScheduleStore(session)

    async def create_reminder(
        self,
        user_id: str,
        date: Any,
        medications: Sequence[Mapping[str, Any]],
        title: Optional[str] = None,
        description: Optional[str] = None,
        time: Optional[Any] = None
    ) -> ReminderCreation:
        """
        创建提醒并逐条绑定药品

        单条药品绑定失败（药品不存在、不属于该用户、时间格式错误等）只记录在对应的
        EntryOutcome 中，其余药品照常绑定。一条都没有绑定成功时整体撤销。

        Args:
            user_id: 用户ID
            date: 提醒日期
            medications: 药品列表，每项包含 medication_id，可选 schedule_time / dosage / time_id
            title: 标题（默认取配置）
            description: 描述
            time: 提醒时间（默认取配置），也是药品未给出 schedule_time 时的默认时间

        Returns:
            ReminderCreation

        Raises:
            ValidationError: 日期不合法、药品列表为空，或没有任何药品绑定成功
        """
        reminder_date = normalize_date(date)
        if not medications:
            raise ValidationError("提醒至少需要一个药品", {"field": "medications"})
        reminder_time = normalize_time(time) if time else settings.DEFAULT_REMINDER_TIME

        async with self.session.begin_nested():
            reminder = await self.reminders.create(
                user_id=user_id,
                date=reminder_date,
                time=reminder_time,
                title=title or settings.DEFAULT_REMINDER_TITLE,
                description=description,
                status=ReminderStatus.PENDING,
            )

            outcomes = []
            for index, entry in enumerate(medications):
                outcomes.append(await self._bind_entry(reminder, index, entry))

            if not any(outcome.success for outcome in outcomes):
                # 在外层 SAVEPOINT 内抛出，提醒行随之撤销
                raise ValidationError(
                    "没有任何药品绑定成功，提醒未创建",
                    {"outcomes": [outcome.to_dict() for outcome in outcomes]}
                )

        reminder = await self.reminders.get_with_entries(reminder.id)
        creation = ReminderCreation(reminder=reminder, outcomes=outcomes)
        logger.info(
            f"创建提醒成功: user_id={user_id}, reminder_id={reminder.id}, date={reminder_date}, "
            f"bound={creation.bound_count}, failed={len(creation.failed)}"
        )
        return creation

    async def _bind_entry(self, reminder: Reminder, index: int, entry: Mapping[str, Any]) -> EntryOutcome:
        """在独立的 SAVEPOINT 中绑定一条药品，失败时只回滚这一条"""
        medication_id = entry.get("medication_id")
        try:
            async with self.session.begin_nested():
                medication = None
                if isinstance(medication_id, int) and not isinstance(medication_id, bool):
                    medication = await self.medications.get_owned(medication_id, reminder.user_id)
                if medication is None:
                    raise NotFoundError(f"药品不存在: {medication_id}", {"medication_id": medication_id})

                schedule_time = entry.get("schedule_time")
                schedule_time = normalize_time(schedule_time) if schedule_time else reminder.time

                reminder_medication = ReminderMedication(
                    reminder_id=reminder.id,
                    medication_id=medication.id,
                    time_id=entry.get("time_id"),
                    schedule_time=schedule_time,
                    dosage=entry.get("dosage") or medication.dosage,
                    status=DoseStatus.PENDING,
                )
                self.session.add(reminder_medication)
                await self.session.flush()
        except DomainError as e:
            logger.warning(
                f"提醒药品绑定失败，已跳过: reminder_id={reminder.id}, index={index}, "
                f"medication_id={medication_id}, error={e.message}"
            )
            return EntryOutcome(index=index, medication_id=medication_id, success=False, error=e.message, code=e.code)
        except SQLAlchemyError as e:
            logger.error(
                f"提醒药品写入失败，已跳过: reminder_id={reminder.id}, index={index}, "
                f"medication_id={medication_id}, error={e}",
                exc_info=True
            )
            storage_error = StorageError()
            return EntryOutcome(
                index=index,
                medication_id=medication_id,
                success=False,
                error=storage_error.message,
                code=storage_error.code,
            )
        return EntryOutcome(index=index, medication_id=medication_id, success=True, entry_id=reminder_medication.id)

    def get_reminders(
        self,
        user_id: str,
        date: Optional[Any] = None,
        status: Optional[Any] = None
    ) -> ReminderStream:
        """
        查询提醒（惰性、可重复遍历），按日期倒序、时间正序

        过滤条件在调用时立即校验，格式错误直接抛出 ValidationError。
        """
        return ReminderStream(
            self.reminders,
            user_id,
            date=normalize_date(date) if date else None,
            status=parse_reminder_status(status) if status else None,
            batch_size=settings.REMINDER_BATCH_SIZE,
        )

    async def get_reminder(self, reminder_id: int, user_id: str) -> Reminder:
        """
        查询单个提醒（含全部提醒药品）

        Raises:
            NotFoundError: 提醒不存在
            AuthorizationError: 提醒不属于该用户
        """
        reminder = await self.reminders.get_with_entries(reminder_id)
        if reminder is None:
            raise NotFoundError(f"提醒不存在: {reminder_id}", {"reminder_id": reminder_id})
        if reminder.user_id != user_id:
            raise AuthorizationError("无权访问该提醒", {"reminder_id": reminder_id})
        return reminder

    async def delete_reminder(self, reminder_id: int, user_id: str) -> None:
        """删除提醒及其提醒药品；已扣减的库存和已写入的历史不回退"""
        reminder = await self.get_reminder(reminder_id, user_id)
        await self.session.delete(reminder)
        await self.session.flush()
        logger.info(f"删除提醒成功: user_id={user_id}, reminder_id={reminder_id}")

    async def _due_slots(self, user_id: str, date: str) -> Tuple[List[Tuple[MedicationSchedule, MedicationTime]], int]:
        schedules = await self.schedule_store.active_schedules_on(user_id, date)
        materialized = await self.reminders.get_materialized_time_ids(user_id, date)

        due = []
        skipped = 0
        for schedule in schedules:
            if not occurs_on(schedule.frequency, schedule.start_date, date):
                continue
            for slot in schedule.times:
                if slot.specific_time is None:
                    continue
                if slot.id in materialized:
                    skipped += 1
                    continue
                due.append((schedule, slot))
        due.sort(key=lambda item: (item[1].specific_time, item[0].medication_id))
        return due, skipped

    async def generate_for_date(self, user_id: str, date: Any) -> GenerationResult:
        """
        按计划为某一天生成提醒

        当天命中的时间槽合并为一个提醒；已经为当天生成过的时间槽跳过，重复调用不会产生重复剂量。
        去重先查已生成的时间槽，再由 (time_id, occurrence_date) 唯一约束兜底：
        并发生成时后提交的一方插入失败，该时间槽按已生成跳过。

        Args:
            user_id: 用户ID
            date: 日期

        Returns:
            GenerationResult（没有新的剂量时 reminder 为 None）
        """
        target_date = normalize_date(date)
        due, skipped = await self._due_slots(user_id, target_date)
        if not due:
            logger.debug(f"当天没有需要生成的剂量: user_id={user_id}, date={target_date}, skipped={skipped}")
            return GenerationResult(date=target_date, skipped_count=skipped)

        reminder = await self.reminders.create(
            user_id=user_id,
            date=target_date,
            time=due[0][1].specific_time,
            title=settings.DEFAULT_REMINDER_TITLE,
            status=ReminderStatus.PENDING,
        )
        created = 0
        for schedule, slot in due:
            medication = await self.medications.get_by_id(schedule.medication_id)
            try:
                async with self.session.begin_nested():
                    self.session.add(ReminderMedication(
                        reminder_id=reminder.id,
                        medication_id=schedule.medication_id,
                        time_id=slot.id,
                        occurrence_date=target_date,
                        schedule_time=slot.specific_time,
                        dosage=slot.dosage or medication.dosage,
                        status=DoseStatus.PENDING,
                    ))
                    await self.session.flush()
            except IntegrityError:
                logger.info(
                    f"时间槽已被并发生成，跳过: user_id={user_id}, date={target_date}, time_id={slot.id}"
                )
                skipped += 1
                continue
            created += 1

        if not created:
            await self.session.delete(reminder)
            await self.session.flush()
            return GenerationResult(date=target_date, skipped_count=skipped)

        reminder = await self.reminders.get_with_entries(reminder.id)
        logger.info(
            f"按计划生成提醒: user_id={user_id}, date={target_date}, reminder_id={reminder.id}, "
            f"created={created}, skipped={skipped}"
        )
        return GenerationResult(date=target_date, reminder=reminder, created_count=created, skipped_count=skipped)

    async def generate_for_range(self, user_id: str, start_date: Any, end_date: Any) -> List[GenerationResult]:
        """
        按计划为日期区间（含两端）逐天生成提醒

        Raises:
            ValidationError: 结束日期早于开始日期，或区间超过允许的最大天数
        """
        start = normalize_date(start_date)
        end = normalize_date(end_date)
        span = days_between(start, end) + 1
        if span > settings.GENERATION_MAX_DAYS:
            raise ValidationError(
                f"生成区间不能超过 {settings.GENERATION_MAX_DAYS} 天",
                {"start_date": start, "end_date": end, "days": span}
            )
        return [await self.generate_for_date(user_id, day) for day in iter_dates(start, end)]
