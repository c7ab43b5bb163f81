"""
提醒生成服务测试

Pytest 命令示例：
================

# 运行整个测试文件
pytest cursor_test/domain/test_reminder_generator.py -v

# 运行特定的测试类
pytest cursor_test/domain/test_reminder_generator.py::TestCreateReminder

# 运行特定的测试方法
pytest cursor_test/domain/test_reminder_generator.py::TestCreateReminder::test_partial_failure_keeps_valid_entries
"""
import pytest
import pytest_asyncio
from sqlalchemy import func, select

from medimates.app.config import settings
from medimates.domain.errors import AuthorizationError, NotFoundError, ValidationError
from medimates.domain.services.reminder_generator import occurs_on
from medimates.infrastructure.database.models import (
    DoseStatus,
    Frequency,
    Reminder,
    ReminderMedication,
    ReminderStatus,
)


async def _count(session, model) -> int:
    result = await session.execute(select(func.count()).select_from(model))
    return result.scalar_one()


class TestCreateReminder:
    """手动创建提醒测试类"""

    @pytest.mark.asyncio
    async def test_create_and_query_by_date(self, generator, schedule_store, user_id, aspirin):
        """
        测试用例：为 Aspirin 创建 2025-06-13 早上 8 点的提醒，再按日期查询

        验证：
        - 恰好返回一个提醒，包含一条 pending 剂量，时间规范为 08:00:00
        """
        # Arrange（准备）
        await schedule_store.create_schedule(
            aspirin.id, user_id, frequency="daily", time_slots=[{"time_of_day": "morning", "specific_time": "08:00"}]
        )

        # Act（执行）
        creation = await generator.create_reminder(
            user_id, "2025-06-13", [{"medication_id": aspirin.id, "schedule_time": "08:00"}]
        )
        reminders = await generator.get_reminders(user_id, date="2025-06-13").to_list()

        # Assert（断言）
        assert creation.bound_count == 1
        assert creation.failed == []
        assert len(reminders) == 1
        assert reminders[0].date == "2025-06-13"
        assert reminders[0].status == ReminderStatus.PENDING
        assert len(reminders[0].medications) == 1
        entry = reminders[0].medications[0]
        assert entry.medication_id == aspirin.id
        assert entry.status == DoseStatus.PENDING
        assert entry.schedule_time == "08:00:00"
        assert entry.dosage == "100mg"

    @pytest.mark.asyncio
    async def test_defaults_for_time_and_title(self, generator, user_id, aspirin):
        """
        测试用例：不给出提醒时间、标题和剂量时间

        验证：
        - 使用默认提醒时间和标题，剂量时间取提醒时间
        - 日期中的时间部分被丢弃，不做时区换算
        """
        creation = await generator.create_reminder(
            user_id, "2025-06-13T23:30:00-03:00", [{"medication_id": aspirin.id}]
        )

        assert creation.reminder.date == "2025-06-13"
        assert creation.reminder.time == settings.DEFAULT_REMINDER_TIME
        assert creation.reminder.title == settings.DEFAULT_REMINDER_TITLE
        assert creation.reminder.medications[0].schedule_time == settings.DEFAULT_REMINDER_TIME

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_valid_entries(self, generator, user_id, aspirin):
        """
        测试用例：一个有效药品加一个不存在的药品

        验证：
        - 提醒被创建，只包含有效药品
        - 失败项通过 outcome 报告，而不是被静默丢弃
        """
        # Act（执行）
        creation = await generator.create_reminder(
            user_id,
            "2025-06-13",
            [
                {"medication_id": aspirin.id, "schedule_time": "08:00"},
                {"medication_id": 99999, "schedule_time": "09:00"},
            ],
        )

        # Assert（断言）
        reminder = await generator.get_reminder(creation.reminder.id, user_id)
        assert [e.medication_id for e in reminder.medications] == [aspirin.id]
        assert creation.bound_count == 1
        assert len(creation.failed) == 1
        failed = creation.failed[0]
        assert failed.index == 1
        assert failed.medication_id == 99999
        assert failed.code == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_foreign_and_malformed_entries_fail_individually(
        self, generator, catalog, user_id, other_user_id, aspirin
    ):
        """
        测试用例：其他用户的药品、时间格式错误的药品

        验证：
        - 各自失败，有效药品照常绑定
        """
        # Arrange（准备）
        foreign = await catalog.create_medication(other_user_id, {"name": "Foreign"})

        # Act（执行）
        creation = await generator.create_reminder(
            user_id,
            "2025-06-13",
            [
                {"medication_id": foreign.id},
                {"medication_id": aspirin.id, "schedule_time": "25:99"},
                {"medication_id": aspirin.id, "schedule_time": "21:00"},
            ],
        )

        # Assert（断言）
        assert [o.success for o in creation.outcomes] == [False, False, True]
        assert creation.outcomes[0].code == "NOT_FOUND"
        assert creation.outcomes[1].code == "VALIDATION_ERROR"
        assert len(creation.reminder.medications) == 1

    @pytest.mark.asyncio
    async def test_all_entries_failing_leaves_no_reminder(self, generator, test_db_session, user_id):
        """
        测试用例：所有药品都绑定失败

        验证：
        - 抛出 ValidationError
        - 不留下没有剂量的空提醒
        """
        with pytest.raises(ValidationError):
            await generator.create_reminder(
                user_id, "2025-06-13", [{"medication_id": 99999}, {"medication_id": "abc"}]
            )

        assert await _count(test_db_session, Reminder) == 0
        assert await _count(test_db_session, ReminderMedication) == 0
        assert await generator.get_reminders(user_id).to_list() == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("date, medications", [
        ("2025-02-30", [{"medication_id": 1}]),
        ("", [{"medication_id": 1}]),
        ("2025-06-13", []),
    ])
    async def test_invalid_input_rejected(self, generator, user_id, date, medications):
        with pytest.raises(ValidationError):
            await generator.create_reminder(user_id, date, medications)


class TestQueryReminders:
    """提醒查询测试类"""

    @pytest.mark.asyncio
    async def test_order_is_date_desc_then_time_asc(self, generator, user_id, aspirin):
        """
        测试用例：不同日期、不同时间的多个提醒

        验证：
        - 按日期倒序、同一天内按时间正序返回
        """
        # Arrange（准备）
        entries = [{"medication_id": aspirin.id}]
        first = await generator.create_reminder(user_id, "2025-06-12", entries, time="09:00")
        late = await generator.create_reminder(user_id, "2025-06-13", entries, time="10:00")
        early = await generator.create_reminder(user_id, "2025-06-13", entries, time="08:00")

        # Act（执行）
        reminders = await generator.get_reminders(user_id).to_list()

        # Assert（断言）
        assert [r.id for r in reminders] == [early.reminder.id, late.reminder.id, first.reminder.id]

    @pytest.mark.asyncio
    async def test_stream_is_batched_and_restartable(self, generator, user_id, aspirin, monkeypatch):
        """
        测试用例：批次大小小于提醒数量，并重复遍历

        验证：
        - 跨批次返回全部提醒，两次遍历结果一致
        """
        # Arrange（准备）
        monkeypatch.setattr(settings, "REMINDER_BATCH_SIZE", 2)
        for day in range(1, 6):
            await generator.create_reminder(user_id, f"2025-06-0{day}", [{"medication_id": aspirin.id}])

        # Act（执行）
        stream = generator.get_reminders(user_id)
        first_pass = [r.id async for r in stream]
        second_pass = await stream.to_list()

        # Assert（断言）
        assert len(first_pass) == 5
        assert first_pass == [r.id for r in second_pass]

    @pytest.mark.asyncio
    async def test_filters(self, generator, user_id, other_user_id, aspirin, reminder_with_two_doses):
        """
        测试用例：按日期、状态过滤；其他用户看不到

        验证：
        - 过滤条件生效，用户之间相互隔离
        """
        assert await generator.get_reminders(user_id, status="completed").to_list() == []
        assert len(await generator.get_reminders(user_id, status="pending").to_list()) == 1
        assert await generator.get_reminders(user_id, date="2025-06-14").to_list() == []
        assert await generator.get_reminders(other_user_id).to_list() == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kwargs", [{"date": "2025/06/13"}, {"status": "done"}])
    async def test_invalid_filters_rejected_eagerly(self, generator, user_id, kwargs):
        with pytest.raises(ValidationError):
            generator.get_reminders(user_id, **kwargs)


    @pytest.mark.asyncio
    async def test_get_reminder_ownership(self, generator, other_user_id, reminder_with_two_doses):
        """
        测试用例：查询他人的提醒和不存在的提醒

        验证：
        - 他人提醒抛出 AuthorizationError，不存在抛出 NotFoundError
        """
        with pytest.raises(AuthorizationError):
            await generator.get_reminder(reminder_with_two_doses.id, other_user_id)
        with pytest.raises(NotFoundError):
            await generator.get_reminder(99999, other_user_id)

    @pytest.mark.asyncio
    async def test_delete_reminder_removes_entries(self, generator, test_db_session, user_id, reminder_with_two_doses):
        await generator.delete_reminder(reminder_with_two_doses.id, user_id)

        assert await _count(test_db_session, Reminder) == 0
        assert await _count(test_db_session, ReminderMedication) == 0


class TestOccursOn:
    """计划频率命中测试类"""

    @pytest.mark.parametrize("frequency, date, expected", [
        (Frequency.DAILY, "2025-05-31", False),
        (Frequency.DAILY, "2025-06-01", True),
        (Frequency.DAILY, "2025-06-02", True),
        (Frequency.EVERY_OTHER_DAY, "2025-06-02", False),
        (Frequency.EVERY_OTHER_DAY, "2025-06-03", True),
        (Frequency.WEEKLY, "2025-06-07", False),
        (Frequency.WEEKLY, "2025-06-08", True),
        (Frequency.MONTHLY, "2025-07-01", True),
        (Frequency.MONTHLY, "2025-07-02", False),
        (Frequency.AS_NEEDED, "2025-06-01", False),
    ])
    def test_occurs_on(self, frequency, date, expected):
        assert occurs_on(frequency, "2025-06-01", date) is expected

    def test_monthly_skips_short_months(self):
        assert occurs_on(Frequency.MONTHLY, "2025-01-31", "2025-02-28") is False
        assert occurs_on(Frequency.MONTHLY, "2025-01-31", "2025-03-31") is True


class TestGenerateFromSchedules:
    """按计划生成提醒测试类"""

    @pytest_asyncio.fixture
    async def schedules(self, schedule_store, user_id, aspirin, vitamin):
        await schedule_store.create_schedule(
            aspirin.id, user_id, frequency="daily", start_date="2025-06-01",
            time_slots=[{"specific_time": "20:00"}, {"specific_time": "08:00", "dosage": "2 tablets"}],
        )
        await schedule_store.create_schedule(
            vitamin.id, user_id, frequency="weekly", start_date="2025-06-01",
            time_slots=[{"specific_time": "09:00"}],
        )

    @pytest.mark.asyncio
    async def test_generate_for_date(self, generator, user_id, aspirin, vitamin, schedules):
        """
        测试用例：每日计划（两个时间槽）+ 每周计划在命中日生成

        验证：
        - 合并为一个提醒，剂量按时间排序
        - 提醒时间取最早的时间槽，剂量优先取时间槽剂量
        """
        # Act（执行）
        result = await generator.generate_for_date(user_id, "2025-06-08")

        # Assert（断言）
        assert result.created_count == 3
        assert result.skipped_count == 0
        reminder = result.reminder
        assert reminder.time == "08:00:00"
        assert [(e.medication_id, e.schedule_time) for e in reminder.medications] == [
            (aspirin.id, "08:00:00"),
            (vitamin.id, "09:00:00"),
            (aspirin.id, "20:00:00"),
        ]
        assert reminder.medications[0].dosage == "2 tablets"
        assert reminder.medications[2].dosage == "100mg"
        assert all(e.time_id is not None for e in reminder.medications)

    @pytest.mark.asyncio
    async def test_generation_is_idempotent(self, generator, user_id, schedules):
        """
        测试用例：同一天重复生成

        验证：
        - 第二次不产生新提醒，已生成的时间槽计为跳过
        """
        await generator.generate_for_date(user_id, "2025-06-09")

        second = await generator.generate_for_date(user_id, "2025-06-09")

        assert second.reminder is None
        assert second.created_count == 0
        assert second.skipped_count == 2
        assert len(await generator.get_reminders(user_id, date="2025-06-09").to_list()) == 1

    @pytest.mark.asyncio
    async def test_unique_constraint_blocks_duplicate_generation(
        self, generator, test_db_session, user_id, schedules, monkeypatch
    ):
        """
        测试用例：已生成时间槽的查询没有看到前一次生成（并发生成时的情形）

        验证：
        - 唯一约束拒绝重复剂量，时间槽计为跳过
        - 不留下没有剂量的空提醒
        """
        # Arrange（准备）
        await generator.generate_for_date(user_id, "2025-06-09")

        async def nothing_materialized(user_id, date):
            return set()

        monkeypatch.setattr(generator.reminders, "get_materialized_time_ids", nothing_materialized)

        # Act（执行）
        second = await generator.generate_for_date(user_id, "2025-06-09")

        # Assert（断言）
        assert second.reminder is None
        assert second.created_count == 0
        assert second.skipped_count == 2
        assert await _count(test_db_session, Reminder) == 1
        assert await _count(test_db_session, ReminderMedication) == 2

    @pytest.mark.asyncio
    async def test_manual_entries_not_bound_by_generation_constraint(self, generator, user_id, aspirin, schedules):
        """
        测试用例：手动创建的提醒引用了同一个时间槽，之后再按计划生成

        验证：
        - 手动剂量没有 occurrence_date，多条手动剂量之间不冲突
        - 按计划生成的剂量记录 occurrence_date
        """
        # Arrange（准备）
        generated = await generator.generate_for_date(user_id, "2025-06-10")
        time_id = generated.reminder.medications[0].time_id

        # Act（执行）
        manual = await generator.create_reminder(
            user_id,
            "2025-06-10",
            [{"medication_id": aspirin.id, "time_id": time_id}, {"medication_id": aspirin.id, "time_id": time_id}],
        )

        # Assert（断言）
        assert manual.bound_count == 2
        assert all(e.occurrence_date is None for e in manual.reminder.medications)
        assert all(e.occurrence_date == "2025-06-10" for e in generated.reminder.medications)

    @pytest.mark.asyncio
    async def test_nothing_due_before_start(self, generator, user_id, schedules):
        result = await generator.generate_for_date(user_id, "2025-05-31")

        assert result.reminder is None
        assert result.created_count == 0

    @pytest.mark.asyncio
    async def test_generate_for_range(self, generator, user_id, schedules):
        """
        测试用例：按区间生成

        验证：
        - 每天一个结果，命中每周计划的那天多一条剂量
        """
        results = await generator.generate_for_range(user_id, "2025-06-07", "2025-06-09")

        assert [r.date for r in results] == ["2025-06-07", "2025-06-08", "2025-06-09"]
        assert [r.created_count for r in results] == [2, 3, 2]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("start, end", [("2025-06-01", "2025-08-01"), ("2025-06-09", "2025-06-08")])
    async def test_invalid_range_rejected(self, generator, user_id, start, end):
        with pytest.raises(ValidationError):
            await generator.generate_for_range(user_id, start, end)

    @pytest.mark.asyncio
    async def test_schedule_edit_does_not_rewrite_reminders(
        self, generator, schedule_store, user_id, aspirin, schedules
    ):
        """
        测试用例：生成提醒后修改计划时间槽

        验证：
        - 已生成的剂量时间保持不变
        """
        # Arrange（准备）
        result = await generator.generate_for_date(user_id, "2025-06-09")
        schedule = (await schedule_store.list_schedules(aspirin.id, user_id))[0]

        # Act（执行）
        await schedule_store.update_schedule(schedule.id, user_id, {"time_slots": [{"specific_time": "10:00"}]})

        # Assert（断言）
        reminder = await generator.get_reminder(result.reminder.id, user_id)
        assert [e.schedule_time for e in reminder.medications] == ["08:00:00", "20:00:00"]
