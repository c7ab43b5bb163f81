"""
用药历史与依从性统计Schema
"""
from typing import Dict, List, Optional
from datetime import datetime

from medimates.app.api.schemas.common import CamelModel
from medimates.domain.outcome import AdherenceSummary


class HistoryResponse(CamelModel):
    """用药历史响应"""
    id: int
    user_id: str
    medication_id: int
    reminder_medication_id: Optional[int]
    taken_date: str
    taken_time: Optional[str]
    status: str
    notes: Optional[str]
    created_at: datetime


class MedicationAdherenceResponse(CamelModel):
    """单个药品的依从性"""
    medication_id: int
    name: Optional[str]
    counts: Dict[str, int]
    adherence_rate: Optional[float]


class AdherenceSummaryResponse(CamelModel):
    """依从性汇总响应"""
    start_date: str
    end_date: str
    total: int
    counts: Dict[str, int]
    adherence_rate: Optional[float]
    medications: List[MedicationAdherenceResponse]

    @classmethod
    def from_summary(cls, summary: AdherenceSummary) -> "AdherenceSummaryResponse":
        return cls(
            start_date=summary.start_date,
            end_date=summary.end_date,
            total=summary.total,
            counts={status.value: count for status, count in summary.counts.items()},
            adherence_rate=summary.adherence_rate,
            medications=[
                MedicationAdherenceResponse(
                    medication_id=item.medication_id,
                    name=item.name,
                    counts={status.value: count for status, count in item.counts.items()},
                    adherence_rate=item.adherence_rate,
                )
                for item in summary.medications
            ],
        )
