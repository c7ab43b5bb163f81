"""
提醒与提醒药品模型
"""
import enum
from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship

from medimates.infrastructure.database.base import Base
from medimates.infrastructure.database.models.medication import utcnow


class ReminderStatus(str, enum.Enum):
    """提醒汇总状态枚举"""
    PENDING = "pending"  # 仍有未处理的剂量
    COMPLETED = "completed"  # 所有剂量均已进入终态


class DoseStatus(str, enum.Enum):
    """单次剂量状态枚举"""
    PENDING = "pending"  # 待服用（初始状态）
    TAKEN = "taken"  # 已服用
    SKIPPED = "skipped"  # 已跳过
    MISSED = "missed"  # 已漏服


TERMINAL_STATUSES = frozenset({DoseStatus.TAKEN, DoseStatus.SKIPPED, DoseStatus.MISSED})


def _enum_column(enum_cls):
    return SQLEnum(
        enum_cls,
        native_enum=False,
        length=20,
        values_callable=lambda members: [m.value for m in members],
    )


class Reminder(Base):
    """提醒模型（某用户某一天的待服剂量容器）"""

    __tablename__ = "reminders"

    id = Column(Integer, primary_key=True, autoincrement=True, comment="提醒ID")
    user_id = Column(
        String(50),
        nullable=False,
        index=True,
        comment="用户ID"
    )
    date = Column(String(10), nullable=False, index=True, comment="日期（YYYY-MM-DD，无时区）")
    time = Column(String(8), nullable=False, default="09:00:00", comment="提醒时间（HH:MM:SS）")
    title = Column(String(200), nullable=False, default="Medication Reminder", comment="标题")
    description = Column(Text, nullable=True, comment="描述")
    status = Column(
        _enum_column(ReminderStatus),
        nullable=False,
        default=ReminderStatus.PENDING,
        comment="汇总状态"
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, comment="创建时间")
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        comment="更新时间"
    )

    medications = relationship(
        "ReminderMedication",
        back_populates="reminder",
        cascade="all, delete-orphan",
        order_by="ReminderMedication.schedule_time",
        lazy="selectin",
    )

    @property
    def is_completed(self) -> bool:
        return self.status == ReminderStatus.COMPLETED

    def __repr__(self):
        return f"<Reminder(id={self.id}, user_id={self.user_id}, date={self.date}, status={self.status})>"


class ReminderMedication(Base):
    """提醒药品模型（提醒内的一次剂量，依从性跟踪的基本单位）"""

    __tablename__ = "reminder_medications"
    __table_args__ = (
        # 同一时间槽同一天只能生成一次；手动创建的剂量 occurrence_date 为空，不受约束
        UniqueConstraint("time_id", "occurrence_date", name="uq_reminder_medications_time_occurrence"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True, comment="提醒药品ID")
    reminder_id = Column(
        Integer,
        ForeignKey("reminders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="提醒ID"
    )
    medication_id = Column(
        Integer,
        ForeignKey("medications.id"),
        nullable=False,
        index=True,
        comment="药品ID"
    )
    time_id = Column(
        Integer,
        ForeignKey("medication_times.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="来源时间槽ID（按计划生成时记录）"
    )
    occurrence_date = Column(String(10), nullable=True, comment="按计划生成的日期（YYYY-MM-DD，手动创建为空）")
    schedule_time = Column(String(8), nullable=False, comment="计划服用时间（HH:MM:SS）")
    dosage = Column(String(100), nullable=True, comment="剂量")
    status = Column(
        _enum_column(DoseStatus),
        nullable=False,
        default=DoseStatus.PENDING,
        comment="剂量状态"
    )
    taken_at = Column(DateTime(timezone=True), nullable=True, comment="服用时间（仅 taken 时有值）")
    notes = Column(Text, nullable=True, comment="备注")

    reminder = relationship("Reminder", back_populates="medications")
    medication = relationship("Medication", lazy="selectin")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self):
        return (
            f"<ReminderMedication(id={self.id}, reminder_id={self.reminder_id}, "
            f"medication_id={self.medication_id}, status={self.status})>"
        )
