"""
用药计划与时间槽模型
"""
import enum
from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship

from medimates.infrastructure.database.base import Base
from medimates.infrastructure.database.models.medication import utcnow


class Frequency(str, enum.Enum):
    """用药频率枚举"""
    DAILY = "daily"  # 每天
    EVERY_OTHER_DAY = "every_other_day"  # 隔天
    WEEKLY = "weekly"  # 每周（与开始日期同一星期几）
    MONTHLY = "monthly"  # 每月（与开始日期同一日）
    AS_NEEDED = "as_needed"  # 按需，不生成提醒


class MedicationSchedule(Base):
    """用药计划模型"""

    __tablename__ = "medication_schedules"

    id = Column(Integer, primary_key=True, autoincrement=True, comment="计划ID")
    medication_id = Column(
        Integer,
        ForeignKey("medications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="药品ID"
    )
    frequency = Column(
        SQLEnum(
            Frequency,
            native_enum=False,
            length=20,
            values_callable=lambda members: [m.value for m in members],
        ),
        nullable=False,
        default=Frequency.DAILY,
        comment="用药频率"
    )
    start_date = Column(String(10), nullable=False, index=True, comment="开始日期（YYYY-MM-DD）")
    end_date = Column(String(10), nullable=True, comment="结束日期（含当天，可为空）")
    when_to_take = Column(String(200), nullable=True, comment="服用时机（如：饭后）")
    notes = Column(Text, nullable=True, comment="备注")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, comment="创建时间")
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        comment="更新时间"
    )

    medication = relationship("Medication", back_populates="schedules")
    times = relationship(
        "MedicationTime",
        back_populates="schedule",
        cascade="all, delete-orphan",
        order_by="MedicationTime.specific_time",
        lazy="selectin",
    )

    def __repr__(self):
        return (
            f"<MedicationSchedule(id={self.id}, medication_id={self.medication_id}, "
            f"frequency={self.frequency}, start_date={self.start_date}, end_date={self.end_date})>"
        )


class MedicationTime(Base):
    """时间槽模型（计划内每天的一个服药时间点）"""

    __tablename__ = "medication_times"

    id = Column(Integer, primary_key=True, autoincrement=True, comment="时间槽ID")
    schedule_id = Column(
        Integer,
        ForeignKey("medication_schedules.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="计划ID"
    )
    time_of_day = Column(String(20), nullable=True, comment="时段标签（morning/noon/evening/night）")
    specific_time = Column(String(8), nullable=True, comment="具体时间（HH:MM:SS，按需用药可为空）")
    dosage = Column(String(100), nullable=True, comment="该时间槽的剂量（覆盖药品默认剂量）")

    schedule = relationship("MedicationSchedule", back_populates="times")

    def __repr__(self):
        return f"<MedicationTime(id={self.id}, schedule_id={self.schedule_id}, specific_time={self.specific_time})>"
