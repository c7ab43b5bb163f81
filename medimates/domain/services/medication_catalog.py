"""
药品目录服务

负责药品定义及其库存计数。所有方法只 flush 不提交，事务由调用方控制。
"""
import logging
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from medimates.app.config import settings
from medimates.domain.errors import ConflictError, NotFoundError, ValidationError
from medimates.domain.temporal import normalize_date
from medimates.infrastructure.database.models import Medication, MedicationInventory
from medimates.infrastructure.database.repository import InventoryRepository, MedicationRepository

logger = logging.getLogger(__name__)

DEFAULT_ICON = "pill"
DEFAULT_COLOR = "#FFFFFF"

# 允许通过 attrs/patch 修改的药品字段
MEDICATION_FIELDS = (
    "name",
    "dosage",
    "icon",
    "color",
    "description",
    "side_effects",
    "active_ingredient",
)


class MedicationCatalog:
    """药品目录"""

    def __init__(self, session: AsyncSession):
        """
        初始化药品目录

        Args:
            session: 数据库会话
        """
        self.session = session
        self.medications = MedicationRepository(session)
        self.inventories = InventoryRepository(session)

    async def create_medication(self, user_id: str, attrs: Mapping[str, Any]) -> Medication:
        """
        创建药品

        Args:
            user_id: 用户ID
            attrs: 药品属性（name 必填，其余可选）

        Returns:
            新建的药品

        Raises:
            ValidationError: 名称为空
        """
        name = _clean_name(attrs.get("name"))
        values = {key: attrs.get(key) for key in MEDICATION_FIELDS if key != "name"}
        values["icon"] = values.get("icon") or DEFAULT_ICON
        values["color"] = values.get("color") or DEFAULT_COLOR

        medication = Medication(user_id=user_id, name=name, inventory=None, schedules=[], **values)
        self.session.add(medication)
        await self.session.flush()
        logger.info(f"创建药品成功: user_id={user_id}, medication_id={medication.id}, name={name}")
        return medication

    async def update_medication(
        self,
        medication_id: int,
        user_id: str,
        patch: Mapping[str, Any]
    ) -> Medication:
        """
        部分更新药品属性，不会级联修改计划或提醒

        Args:
            medication_id: 药品ID
            user_id: 用户ID
            patch: 需要更新的字段（只处理出现的键）

        Returns:
            更新后的药品

        Raises:
            NotFoundError: 药品不存在或不属于该用户
            ValidationError: 名称被改为空
        """
        medication = await self.get_medication(medication_id, user_id)
        for key in MEDICATION_FIELDS:
            if key not in patch:
                continue
            value = patch[key]
            if key == "name":
                value = _clean_name(value)
            elif key == "icon":
                value = value or DEFAULT_ICON
            elif key == "color":
                value = value or DEFAULT_COLOR
            setattr(medication, key, value)
        await self.session.flush()
        logger.info(f"更新药品成功: user_id={user_id}, medication_id={medication_id}")
        return medication

    async def get_medication(self, medication_id: int, user_id: str) -> Medication:
        """
        查询药品（含库存和计划）

        Raises:
            NotFoundError: 药品不存在或不属于该用户
        """
        medication = await self.medications.get_owned(medication_id, user_id)
        if medication is None:
            raise NotFoundError(f"药品不存在: {medication_id}", {"medication_id": medication_id})
        return medication

    async def list_medications(self, user_id: str, limit: int = 100, offset: int = 0) -> List[Medication]:
        return await self.medications.get_by_user_id(user_id, limit=limit, offset=offset)

    async def delete_medication(self, medication_id: int, user_id: str) -> None:
        """
        删除药品（连同库存、计划和时间槽）

        Raises:
            NotFoundError: 药品不存在或不属于该用户
            ConflictError: 药品仍被提醒或用药历史引用
        """
        medication = await self.get_medication(medication_id, user_id)
        if await self.medications.is_referenced(medication_id):
            raise ConflictError(
                "药品已被提醒或用药历史引用，不能删除",
                {"medication_id": medication_id}
            )
        await self.session.delete(medication)
        await self.session.flush()
        logger.info(f"删除药品成功: user_id={user_id}, medication_id={medication_id}")

    async def get_inventory(self, medication_id: int) -> Optional[MedicationInventory]:
        return await self.inventories.get_by_medication_id(medication_id)

    async def set_inventory(
        self,
        medication_id: int,
        remaining_quantity: Optional[int] = None,
        unit: Optional[str] = None,
        refill_threshold: Optional[int] = None,
        last_refill_date: Optional[str] = None
    ) -> MedicationInventory:
        """
        设置库存的绝对值（用于创建/编辑药品时一并录入库存），不存在时创建

        Args:
            medication_id: 药品ID
            remaining_quantity: 剩余数量（>= 0）
            unit: 单位
            refill_threshold: 补药阈值（>= 0）
            last_refill_date: 最近补药日期

        Returns:
            库存记录

        Raises:
            ValidationError: 数量或阈值为负数，或日期格式错误
        """
        if remaining_quantity is not None and remaining_quantity < 0:
            raise ValidationError("库存数量不能为负数", {"remaining_quantity": remaining_quantity})
        if refill_threshold is not None and refill_threshold < 0:
            raise ValidationError("补药阈值不能为负数", {"refill_threshold": refill_threshold})
        refill_date = normalize_date(last_refill_date) if last_refill_date else None

        inventory = await self.inventories.get_by_medication_id(medication_id)
        if inventory is None:
            inventory = await self.inventories.create(
                medication_id=medication_id,
                remaining_quantity=remaining_quantity or 0,
                unit=unit or settings.INVENTORY_DEFAULT_UNIT,
                refill_threshold=(
                    refill_threshold if refill_threshold is not None
                    else settings.INVENTORY_DEFAULT_THRESHOLD
                ),
                last_refill_date=refill_date,
            )
            return inventory

        changes: Dict[str, Any] = {}
        if remaining_quantity is not None:
            changes["remaining_quantity"] = remaining_quantity
        if unit:
            changes["unit"] = unit
        if refill_threshold is not None:
            changes["refill_threshold"] = refill_threshold
        if refill_date is not None:
            changes["last_refill_date"] = refill_date
        return await self.inventories.update(inventory.id, **changes)

    async def adjust_inventory(self, medication_id: int, delta: int) -> int:
        """
        原子地增减库存，低于 0 时截断为 0；首次使用时按默认单位和阈值创建库存记录

        Args:
            medication_id: 药品ID
            delta: 增减量（服用一次为 -1）

        Returns:
            调整后的数量
        """
        quantity = await self.inventories.adjust_quantity(
            medication_id,
            delta,
            default_unit=settings.INVENTORY_DEFAULT_UNIT,
            default_threshold=settings.INVENTORY_DEFAULT_THRESHOLD,
        )
        logger.debug(f"库存已调整: medication_id={medication_id}, delta={delta}, remaining={quantity}")
        return quantity

    async def is_low_stock(self, medication_id: int) -> bool:
        """剩余数量 <= 补药阈值时为低库存；没有库存记录时返回 False"""
        inventory = await self.inventories.get_by_medication_id(medication_id)
        if inventory is None:
            return False
        return inventory.is_low_stock


def _clean_name(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("药品名称不能为空", {"field": "name"})
    return value.strip()
