"""
提醒与剂量状态路由
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from medimates.app.api.decorators import transactional
from medimates.app.api.dependencies import get_current_user_id
from medimates.app.api.schemas.common import MessageResponse
from medimates.app.api.schemas.reminders import (
    GenerateRequest,
    GenerationResponse,
    ReminderCreate,
    ReminderCreateResponse,
    ReminderResponse,
    StatusUpdateRequest,
    StatusUpdateResponse,
)
from medimates.domain.services import AdherenceTracker, ReminderGenerator
from medimates.domain.temporal import today
from medimates.infrastructure.database.connection import get_async_session

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/reminders", response_model=List[ReminderResponse])
@transactional("查询提醒列表")
async def list_reminders(
    date: Optional[str] = None,
    status: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session)
):
    """
    查询当前用户的提醒（只读）

    Args:
        date: 日期（YYYY-MM-DD，可选）
        status: 汇总状态 pending/completed（可选）
        user_id: 当前用户（依赖注入）
        session: 数据库会话（依赖注入）

    Returns:
        提醒列表，按日期倒序、时间正序
    """
    stream = ReminderGenerator(session).get_reminders(user_id, date=date, status=status)
    return [ReminderResponse.from_reminder(r) async for r in stream]


@router.post("/reminders", response_model=ReminderCreateResponse, status_code=status.HTTP_201_CREATED)
@transactional("创建提醒")
async def create_reminder(
    data: ReminderCreate,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session)
):
    """
    创建提醒

    单条药品绑定失败不会导致整体失败，响应中的 outcomes 逐条给出结果；
    一条都没有绑定成功时返回 400 且不创建提醒。
    """
    creation = await ReminderGenerator(session).create_reminder(
        user_id,
        data.date,
        [m.model_dump() for m in data.medications],
        title=data.title,
        description=data.description,
        time=data.time,
    )
    return ReminderCreateResponse.from_creation(creation)


@router.post("/reminders/generate", response_model=List[GenerationResponse])
@transactional("按计划生成提醒")
async def generate_reminders(
    data: GenerateRequest,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session)
):
    """
    按用药计划生成提醒；同一天重复调用不会生成重复的剂量

    不传日期时生成今天的提醒。
    """
    generator = ReminderGenerator(session)
    if data.start_date:
        results = await generator.generate_for_range(user_id, data.start_date, data.end_date or data.start_date)
    else:
        results = [await generator.generate_for_date(user_id, data.date or today())]
    return [GenerationResponse.from_result(r) for r in results]


@router.get("/reminders/{reminder_id}", response_model=ReminderResponse)
@transactional("查询提醒")
async def get_reminder(
    reminder_id: int,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session)
):
    """查询单个提醒（含药品明细）"""
    reminder = await ReminderGenerator(session).get_reminder(reminder_id, user_id)
    return ReminderResponse.from_reminder(reminder)


@router.put("/reminders/{reminder_id}/medication/{reminder_medication_id}", response_model=StatusUpdateResponse)
@transactional("更新剂量状态")
async def update_medication_status(
    reminder_id: int,
    reminder_medication_id: int,
    data: StatusUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session)
):
    """
    变更剂量状态

    taken 时追加用药历史并扣减一次库存；响应中的 reminderCompleted 表示提醒是否已全部完成。
    """
    change = await AdherenceTracker(session).set_status(
        reminder_id,
        reminder_medication_id,
        user_id,
        data.status,
        notes=data.notes,
    )
    reminder = await ReminderGenerator(session).get_reminder(reminder_id, user_id)
    return StatusUpdateResponse.from_change(change, reminder)


@router.delete("/reminders/{reminder_id}", response_model=MessageResponse)
@transactional("删除提醒")
async def delete_reminder(
    reminder_id: int,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session)
):
    """删除提醒及其药品明细；已扣减的库存不会恢复"""
    await ReminderGenerator(session).delete_reminder(reminder_id, user_id)
    return MessageResponse(message=f"提醒已删除: {reminder_id}")
