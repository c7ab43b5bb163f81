"""
用药历史模型（只追加，不可修改）
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey

from medimates.infrastructure.database.base import Base
from medimates.infrastructure.database.models.medication import utcnow


class MedicationHistory(Base):
    """用药历史记录模型"""

    __tablename__ = "medication_history"

    id = Column(Integer, primary_key=True, autoincrement=True, comment="历史记录ID")
    user_id = Column(
        String(50),
        nullable=False,
        index=True,
        comment="用户ID"
    )
    medication_id = Column(
        Integer,
        ForeignKey("medications.id"),
        nullable=False,
        index=True,
        comment="药品ID"
    )
    # 仅作审计引用，不设外键：删除提醒时级联不会触及历史记录
    reminder_medication_id = Column(Integer, nullable=True, index=True, comment="来源提醒药品ID")
    taken_date = Column(String(10), nullable=False, index=True, comment="应服日期（YYYY-MM-DD）")
    taken_time = Column(String(8), nullable=True, comment="应服时间（HH:MM:SS）")
    status = Column(String(20), nullable=False, comment="结果状态")
    notes = Column(Text, nullable=True, comment="备注")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, comment="创建时间")

    def __repr__(self):
        return (
            f"<MedicationHistory(id={self.id}, medication_id={self.medication_id}, "
            f"taken_date={self.taken_date}, status={self.status})>"
        )
