"""
提醒相关Schema
"""
from typing import Any, List, Optional
from datetime import datetime
from pydantic import Field

from medimates.app.api.schemas.common import CamelModel
from medimates.domain.outcome import EntryOutcome, GenerationResult, ReminderCreation, StatusChange
from medimates.infrastructure.database.models import (
    DoseStatus,
    Reminder,
    ReminderMedication,
    ReminderStatus,
)


class ReminderMedicationInput(CamelModel):
    """提醒内的药品条目"""
    medication_id: Any = Field(None, description="药品ID（格式错误的条目在绑定时单独失败，不影响其他条目）")
    schedule_time: Any = Field(None, description="计划服用时间（默认取提醒时间）")
    dosage: Optional[str] = Field(None, description="剂量（默认取药品规格）")


class ReminderCreate(CamelModel):
    """创建提醒请求"""
    date: str = Field(description="日期（YYYY-MM-DD）")
    time: Optional[str] = Field(None, description="提醒时间")
    title: Optional[str] = Field(None, description="标题")
    description: Optional[str] = Field(None, description="描述")
    medications: List[ReminderMedicationInput] = Field(default_factory=list, description="药品列表")


class StatusUpdateRequest(CamelModel):
    """剂量状态变更请求"""
    status: str = Field(description="taken / skipped / missed / pending")
    notes: Optional[str] = Field(None, description="备注")


class GenerateRequest(CamelModel):
    """按计划生成提醒请求：给出 date，或给出 startDate/endDate 区间"""
    date: Optional[str] = Field(None, description="单日")
    start_date: Optional[str] = Field(None, description="区间开始日期")
    end_date: Optional[str] = Field(None, description="区间结束日期（默认与开始日期相同）")


class ReminderMedicationResponse(CamelModel):
    """提醒药品响应（含药品展示字段）"""
    id: int
    reminder_id: int
    medication_id: int
    time_id: Optional[int]
    schedule_time: str
    dosage: Optional[str]
    status: DoseStatus
    taken_at: Optional[datetime]
    notes: Optional[str]
    medication_name: Optional[str] = None
    medication_dosage: Optional[str] = None
    medication_icon: Optional[str] = None
    medication_color: Optional[str] = None

    @classmethod
    def from_entry(cls, entry: ReminderMedication) -> "ReminderMedicationResponse":
        response = cls.model_validate(entry)
        medication = entry.medication
        if medication is not None:
            response.medication_name = medication.name
            response.medication_dosage = medication.dosage
            response.medication_icon = medication.icon
            response.medication_color = medication.color
        return response


class ReminderResponse(CamelModel):
    """提醒响应"""
    id: int
    user_id: str
    date: str
    time: str
    title: str
    description: Optional[str]
    status: ReminderStatus
    is_completed: bool
    created_at: datetime
    updated_at: Optional[datetime]
    medications: List[ReminderMedicationResponse] = Field(default_factory=list)

    @classmethod
    def from_reminder(cls, reminder: Reminder) -> "ReminderResponse":
        return cls(
            id=reminder.id,
            user_id=reminder.user_id,
            date=reminder.date,
            time=reminder.time,
            title=reminder.title,
            description=reminder.description,
            status=reminder.status,
            is_completed=reminder.is_completed,
            created_at=reminder.created_at,
            updated_at=reminder.updated_at,
            medications=[ReminderMedicationResponse.from_entry(e) for e in reminder.medications],
        )


class EntryOutcomeResponse(CamelModel):
    """单条药品绑定结果"""
    index: int
    medication_id: Optional[int]
    success: bool
    entry_id: Optional[int]
    error: Optional[str]
    code: Optional[str]

    @classmethod
    def from_outcome(cls, outcome: EntryOutcome) -> "EntryOutcomeResponse":
        medication_id = outcome.medication_id
        if not isinstance(medication_id, int) or isinstance(medication_id, bool):
            medication_id = None
        return cls(**{**outcome.to_dict(), "medication_id": medication_id})


class ReminderCreateResponse(CamelModel):
    """创建提醒响应：调用方应检查 failedCount 而不是假定全部成功"""
    reminder: ReminderResponse
    bound_count: int
    failed_count: int
    outcomes: List[EntryOutcomeResponse]

    @classmethod
    def from_creation(cls, creation: ReminderCreation) -> "ReminderCreateResponse":
        return cls(
            reminder=ReminderResponse.from_reminder(creation.reminder),
            bound_count=creation.bound_count,
            failed_count=len(creation.failed),
            outcomes=[EntryOutcomeResponse.from_outcome(o) for o in creation.outcomes],
        )


class StatusUpdateResponse(CamelModel):
    """剂量状态变更响应"""
    success: bool = True
    status: DoseStatus
    taken_at: Optional[datetime]
    reminder_completed: bool
    remaining_quantity: Optional[int]
    reminder: ReminderResponse

    @classmethod
    def from_change(cls, change: StatusChange, reminder: Reminder) -> "StatusUpdateResponse":
        return cls(
            status=change.entry.status,
            taken_at=change.entry.taken_at,
            reminder_completed=change.reminder_completed,
            remaining_quantity=change.remaining_quantity,
            reminder=ReminderResponse.from_reminder(reminder),
        )


class GenerationResponse(CamelModel):
    """单日生成结果"""
    date: str
    created_count: int
    skipped_count: int
    reminder: Optional[ReminderResponse] = None

    @classmethod
    def from_result(cls, result: GenerationResult) -> "GenerationResponse":
        return cls(
            date=result.date,
            created_count=result.created_count,
            skipped_count=result.skipped_count,
            reminder=ReminderResponse.from_reminder(result.reminder) if result.reminder else None,
        )
