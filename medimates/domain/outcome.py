"""
领域操作结果对象

尽力而为的批量操作（如一次创建多条提醒药品）不会静默丢弃失败项，
而是为每一项返回一个结果，由调用方自行检查。
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from medimates.infrastructure.database.models import (
    DoseStatus,
    Reminder,
    ReminderMedication,
)


@dataclass
class EntryOutcome:
    """单条提醒药品的绑定结果"""

    index: int
    medication_id: Any
    success: bool
    entry_id: Optional[int] = None
    error: Optional[str] = None
    code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "medication_id": self.medication_id,
            "success": self.success,
            "entry_id": self.entry_id,
            "error": self.error,
            "code": self.code,
        }


@dataclass
class ReminderCreation:
    """创建提醒的结果：提醒本身及每条药品的绑定结果"""

    reminder: Reminder
    outcomes: List[EntryOutcome] = field(default_factory=list)

    @property
    def bound_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def failed(self) -> List[EntryOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.success]


@dataclass
class StatusChange:
    """剂量状态变更结果"""

    reminder: Reminder
    entry: ReminderMedication
    reminder_completed: bool
    remaining_quantity: Optional[int] = None
    history_id: Optional[int] = None


@dataclass
class GenerationResult:
    """按计划为某一天生成提醒的结果"""

    date: str
    reminder: Optional[Reminder] = None
    created_count: int = 0
    skipped_count: int = 0


@dataclass
class MedicationAdherence:
    """单个药品在统计区间内的依从性"""

    medication_id: int
    name: Optional[str]
    counts: Dict[DoseStatus, int]

    @property
    def adherence_rate(self) -> Optional[float]:
        return adherence_rate(self.counts)


@dataclass
class AdherenceSummary:
    """统计区间内的依从性汇总"""

    start_date: str
    end_date: str
    counts: Dict[DoseStatus, int]
    medications: List[MedicationAdherence] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    @property
    def adherence_rate(self) -> Optional[float]:
        return adherence_rate(self.counts)


def adherence_rate(counts: Dict[DoseStatus, int]) -> Optional[float]:
    """
    依从率 = 已服用 / 已进入终态的剂量数

    待服用的剂量不计入分母；没有任何终态剂量时返回 None。
    """
    decided = sum(
        counts.get(status, 0)
        for status in (DoseStatus.TAKEN, DoseStatus.SKIPPED, DoseStatus.MISSED)
    )
    if decided == 0:
        return None
    return round(counts.get(DoseStatus.TAKEN, 0) / decided, 4)
