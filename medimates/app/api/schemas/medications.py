"""
药品与库存相关Schema
"""
from typing import Any, Dict, List, Optional
from datetime import datetime
from pydantic import Field, computed_field

from medimates.app.api.schemas.common import CamelModel
from medimates.app.api.schemas.schedules import ScheduleResponse, TimeSlotInput

INVENTORY_FIELDS = ("remaining_quantity", "unit", "refill_threshold", "last_refill_date")
SCHEDULE_FIELDS = ("frequency", "start_date", "end_date", "when_to_take", "notes", "times")
MEDICATION_FIELDS = ("name", "dosage", "icon", "color", "description", "side_effects", "active_ingredient")


class MedicationUpdate(CamelModel):
    """
    更新药品请求

    药品属性、库存和计划可在一次请求中一并提交，只处理请求中出现的字段。
    """
    name: Optional[str] = Field(None, description="药品名称")
    dosage: Optional[str] = Field(None, description="规格/剂量文本")
    icon: Optional[str] = Field(None, description="分类/图标标签")
    color: Optional[str] = Field(None, description="显示颜色")
    description: Optional[str] = Field(None, description="描述")
    side_effects: Optional[str] = Field(None, description="副作用说明")
    active_ingredient: Optional[str] = Field(None, description="有效成分")

    remaining_quantity: Optional[int] = Field(None, ge=0, description="剩余数量")
    unit: Optional[str] = Field(None, description="库存单位")
    refill_threshold: Optional[int] = Field(None, ge=0, description="补药阈值")
    last_refill_date: Optional[str] = Field(None, description="最近补药日期")

    frequency: Optional[str] = Field(None, description="用药频率")
    start_date: Optional[str] = Field(None, description="开始日期")
    end_date: Optional[str] = Field(None, description="结束日期（含当天）")
    when_to_take: Optional[str] = Field(None, description="服用时机")
    notes: Optional[str] = Field(None, description="计划备注")
    times: Optional[List[TimeSlotInput]] = Field(None, description="时间槽")

    def _provided(self, fields) -> Dict[str, Any]:
        values = self.model_dump(include=set(fields), exclude_unset=True)
        if "times" in values:
            values["time_slots"] = values.pop("times")
        return values

    def medication_patch(self) -> Dict[str, Any]:
        return self._provided(MEDICATION_FIELDS)

    def inventory_values(self) -> Dict[str, Any]:
        return self._provided(INVENTORY_FIELDS)

    def schedule_values(self) -> Dict[str, Any]:
        return self._provided(SCHEDULE_FIELDS)


class MedicationCreate(MedicationUpdate):
    """创建药品请求"""
    name: str = Field(description="药品名称（必填）")


class InventoryAdjustRequest(CamelModel):
    """库存增减请求（补药为正数，手动扣减为负数）"""
    delta: int = Field(description="增减量")


class InventoryResponse(CamelModel):
    """库存响应"""
    medication_id: int
    remaining_quantity: int
    unit: str
    refill_threshold: int
    last_refill_date: Optional[str]
    is_low_stock: bool
    updated_at: Optional[datetime]


class MedicationResponse(CamelModel):
    """药品响应（含库存和计划）"""
    id: int
    user_id: str
    name: str
    dosage: Optional[str]
    icon: str
    color: str
    description: Optional[str]
    side_effects: Optional[str]
    active_ingredient: Optional[str]
    created_at: datetime
    updated_at: Optional[datetime]
    inventory: Optional[InventoryResponse] = None
    schedules: List[ScheduleResponse] = Field(default_factory=list)

    @computed_field
    @property
    def is_low_stock(self) -> bool:
        return self.inventory is not None and self.inventory.is_low_stock
