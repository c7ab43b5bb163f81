"""
药品、库存与用药计划路由
"""
import logging
from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from medimates.app.api.decorators import transactional
from medimates.app.api.dependencies import get_current_user_id
from medimates.app.api.schemas.common import MessageResponse
from medimates.app.api.schemas.medications import (
    InventoryAdjustRequest,
    InventoryResponse,
    MedicationCreate,
    MedicationResponse,
    MedicationUpdate,
)
from medimates.app.api.schemas.schedules import ScheduleCreate, ScheduleResponse, ScheduleUpdate
from medimates.domain.errors import NotFoundError
from medimates.domain.services import MedicationCatalog, ScheduleStore
from medimates.domain.services.schedule_store import parse_frequency
from medimates.domain.temporal import today
from medimates.infrastructure.database.connection import get_async_session
from medimates.infrastructure.database.models import Frequency

logger = logging.getLogger(__name__)
router = APIRouter()


async def _apply_inventory_and_schedule(
    catalog: MedicationCatalog,
    store: ScheduleStore,
    medication_id: int,
    user_id: str,
    data: MedicationUpdate
) -> None:
    """
    随药品一并提交的库存和计划

    库存按绝对值设置。计划存在则更新第一个；不存在时只有给出 times 或频率为 as_needed 才新建，
    其余零散的计划字段不足以构成计划，忽略并记录日志，不阻止药品本身的创建或更新。
    """
    inventory_values = data.inventory_values()
    if inventory_values:
        await catalog.set_inventory(medication_id, **inventory_values)

    schedule_values = data.schedule_values()
    if not schedule_values:
        return
    schedules = await store.list_schedules(medication_id, user_id)
    if schedules:
        await store.update_schedule(schedules[0].id, user_id, schedule_values)
        return

    frequency = schedule_values.get("frequency")
    as_needed = frequency is not None and parse_frequency(frequency) == Frequency.AS_NEEDED
    if "time_slots" not in schedule_values and not as_needed:
        logger.info(
            f"未给出时间槽，跳过计划创建: medication_id={medication_id}, "
            f"fields={sorted(schedule_values)}"
        )
        return
    await store.create_schedule(medication_id, user_id, **schedule_values)


@router.get("/medications", response_model=List[MedicationResponse])
@transactional("查询药品列表")
async def list_medications(
    limit: int = 100,
    offset: int = 0,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session)
):
    """
    查询当前用户的药品列表（含库存和计划）

    Args:
        limit: 限制数量（默认100）
        offset: 偏移量（默认0）
        user_id: 当前用户（依赖注入）
        session: 数据库会话（依赖注入）

    Returns:
        药品列表
    """
    medications = await MedicationCatalog(session).list_medications(user_id, limit=limit, offset=offset)
    return [MedicationResponse.model_validate(m) for m in medications]


@router.get("/medications/{medication_id}", response_model=MedicationResponse)
@transactional("查询药品")
async def get_medication(
    medication_id: int,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session)
):
    """查询单个药品（计划按时间槽分组返回）"""
    medication = await MedicationCatalog(session).get_medication(medication_id, user_id)
    return MedicationResponse.model_validate(medication)


@router.post("/medications", response_model=MedicationResponse, status_code=status.HTTP_201_CREATED)
@transactional("创建药品")
async def create_medication(
    data: MedicationCreate,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session)
):
    """
    创建药品，可同时录入库存和用药计划

    Args:
        data: 创建请求数据
        user_id: 当前用户（依赖注入）
        session: 数据库会话（依赖注入）

    Returns:
        创建的药品
    """
    catalog = MedicationCatalog(session)
    store = ScheduleStore(session)
    medication = await catalog.create_medication(user_id, data.medication_patch())
    await _apply_inventory_and_schedule(catalog, store, medication.id, user_id, data)

    medication = await catalog.get_medication(medication.id, user_id)
    return MedicationResponse.model_validate(medication)


@router.put("/medications/{medication_id}", response_model=MedicationResponse)
@transactional("更新药品")
async def update_medication(
    medication_id: int,
    data: MedicationUpdate,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session)
):
    """
    更新药品，可同时更新库存和用药计划（只处理请求中出现的字段）

    Returns:
        更新后的药品
    """
    catalog = MedicationCatalog(session)
    store = ScheduleStore(session)
    await catalog.update_medication(medication_id, user_id, data.medication_patch())
    await _apply_inventory_and_schedule(catalog, store, medication_id, user_id, data)

    medication = await catalog.get_medication(medication_id, user_id)
    return MedicationResponse.model_validate(medication)


@router.delete("/medications/{medication_id}", response_model=MessageResponse)
@transactional("删除药品")
async def delete_medication(
    medication_id: int,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session)
):
    """删除药品；仍被提醒或用药历史引用时返回 409"""
    await MedicationCatalog(session).delete_medication(medication_id, user_id)
    return MessageResponse(message=f"药品已删除: {medication_id}")


@router.get("/medications/{medication_id}/inventory", response_model=InventoryResponse)
@transactional("查询库存")
async def get_inventory(
    medication_id: int,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session)
):
    """查询药品库存"""
    catalog = MedicationCatalog(session)
    await catalog.get_medication(medication_id, user_id)
    inventory = await catalog.get_inventory(medication_id)
    if inventory is None:
        raise NotFoundError(f"药品尚未录入库存: {medication_id}", {"medication_id": medication_id})
    return InventoryResponse.model_validate(inventory)


@router.post("/medications/{medication_id}/inventory/adjust", response_model=InventoryResponse)
@transactional("调整库存")
async def adjust_inventory(
    medication_id: int,
    data: InventoryAdjustRequest,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session)
):
    """
    增减库存（补药为正数），结果低于 0 时截断为 0；补药时记录补药日期

    Returns:
        调整后的库存
    """
    catalog = MedicationCatalog(session)
    await catalog.get_medication(medication_id, user_id)
    await catalog.adjust_inventory(medication_id, data.delta)
    if data.delta > 0:
        await catalog.set_inventory(medication_id, last_refill_date=today())
    inventory = await catalog.get_inventory(medication_id)
    return InventoryResponse.model_validate(inventory)


@router.get("/medications/{medication_id}/schedules", response_model=List[ScheduleResponse])
@transactional("查询用药计划")
async def list_schedules(
    medication_id: int,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session)
):
    """查询药品的全部用药计划"""
    schedules = await ScheduleStore(session).list_schedules(medication_id, user_id)
    return [ScheduleResponse.model_validate(s) for s in schedules]


@router.post(
    "/medications/{medication_id}/schedules",
    response_model=ScheduleResponse,
    status_code=status.HTTP_201_CREATED
)
@transactional("创建用药计划")
async def create_schedule(
    medication_id: int,
    data: ScheduleCreate,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session)
):
    """创建用药计划及其时间槽"""
    schedule = await ScheduleStore(session).create_schedule(medication_id, user_id, **data.to_kwargs())
    return ScheduleResponse.model_validate(schedule)


@router.put("/schedules/{schedule_id}", response_model=ScheduleResponse)
@transactional("更新用药计划")
async def update_schedule(
    schedule_id: int,
    data: ScheduleUpdate,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session)
):
    """部分更新用药计划；已生成的提醒不受影响"""
    schedule = await ScheduleStore(session).update_schedule(schedule_id, user_id, data.to_patch())
    return ScheduleResponse.model_validate(schedule)
