"""
用药计划相关Schema
"""
from typing import Any, Dict, List, Optional
from datetime import datetime
from pydantic import Field

from medimates.app.api.schemas.common import CamelModel
from medimates.infrastructure.database.models import Frequency


class TimeSlotInput(CamelModel):
    """时间槽输入"""
    time_of_day: Optional[str] = Field(None, description="时段标签（morning/noon/evening/night）")
    specific_time: Optional[str] = Field(None, description="具体时间（HH:MM 或 HH:MM:SS）")
    dosage: Optional[str] = Field(None, description="该时间槽的剂量")


class ScheduleCreate(CamelModel):
    """创建用药计划请求"""
    frequency: str = Field(Frequency.DAILY.value, description="用药频率")
    start_date: Optional[str] = Field(None, description="开始日期（默认今天）")
    end_date: Optional[str] = Field(None, description="结束日期（含当天）")
    when_to_take: Optional[str] = Field(None, description="服用时机")
    notes: Optional[str] = Field(None, description="备注")
    times: List[TimeSlotInput] = Field(default_factory=list, description="时间槽")

    def to_kwargs(self) -> Dict[str, Any]:
        values = self.model_dump()
        values["time_slots"] = values.pop("times")
        return values


class ScheduleUpdate(CamelModel):
    """更新用药计划请求（只处理出现的字段）"""
    frequency: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    when_to_take: Optional[str] = None
    notes: Optional[str] = None
    times: Optional[List[TimeSlotInput]] = None

    def to_patch(self) -> Dict[str, Any]:
        values = self.model_dump(exclude_unset=True)
        if "times" in values:
            values["time_slots"] = values.pop("times")
        return values


class TimeSlotResponse(CamelModel):
    """时间槽响应"""
    id: int
    time_of_day: Optional[str]
    specific_time: Optional[str]
    dosage: Optional[str]


class ScheduleResponse(CamelModel):
    """用药计划响应"""
    id: int
    medication_id: int
    frequency: Frequency
    start_date: str
    end_date: Optional[str]
    when_to_take: Optional[str]
    notes: Optional[str]
    times: List[TimeSlotResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: Optional[datetime]
