"""
药品与库存模型
"""
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship

from medimates.infrastructure.database.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Medication(Base):
    """药品模型（归属于单个用户）"""

    __tablename__ = "medications"

    id = Column(Integer, primary_key=True, autoincrement=True, comment="药品ID")
    user_id = Column(
        String(50),
        nullable=False,
        index=True,
        comment="用户ID"
    )
    name = Column(String(200), nullable=False, comment="药品名称")
    dosage = Column(String(100), nullable=True, comment="规格/剂量文本（如：500mg、1片）")
    icon = Column(String(50), nullable=False, default="pill", comment="分类/图标标签")
    color = Column(String(20), nullable=False, default="#FFFFFF", comment="显示颜色")
    description = Column(Text, nullable=True, comment="描述")
    side_effects = Column(Text, nullable=True, comment="副作用说明")
    active_ingredient = Column(String(200), nullable=True, comment="有效成分")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, comment="创建时间")
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        comment="更新时间"
    )

    inventory = relationship(
        "MedicationInventory",
        uselist=False,
        back_populates="medication",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    schedules = relationship(
        "MedicationSchedule",
        back_populates="medication",
        cascade="all, delete-orphan",
        order_by="MedicationSchedule.id",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<Medication(id={self.id}, user_id={self.user_id}, name={self.name})>"


class MedicationInventory(Base):
    """药品库存模型（与药品一对一，可选）"""

    __tablename__ = "medication_inventory"

    id = Column(Integer, primary_key=True, autoincrement=True, comment="库存ID")
    medication_id = Column(
        Integer,
        ForeignKey("medications.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        comment="药品ID"
    )
    remaining_quantity = Column(Integer, nullable=False, default=0, comment="剩余数量（始终 >= 0）")
    unit = Column(String(20), nullable=False, default="tablet", comment="单位（tablet/ml/puff等）")
    refill_threshold = Column(Integer, nullable=False, default=5, comment="补药提醒阈值")
    last_refill_date = Column(String(10), nullable=True, comment="最近补药日期（YYYY-MM-DD）")
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        comment="更新时间"
    )

    medication = relationship("Medication", back_populates="inventory")

    @property
    def is_low_stock(self) -> bool:
        return self.remaining_quantity <= self.refill_threshold

    def __repr__(self):
        return (
            f"<MedicationInventory(medication_id={self.medication_id}, "
            f"remaining_quantity={self.remaining_quantity}{self.unit})>"
        )
