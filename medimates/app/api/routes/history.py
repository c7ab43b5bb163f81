"""
用药历史与依从性统计路由
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from medimates.app.api.decorators import transactional
from medimates.app.api.dependencies import get_current_user_id
from medimates.app.api.schemas.adherence import AdherenceSummaryResponse, HistoryResponse
from medimates.domain.services import AdherenceTracker
from medimates.domain.temporal import shift_date, today
from medimates.infrastructure.database.connection import get_async_session

logger = logging.getLogger(__name__)
router = APIRouter()

# 未指定区间时统计最近 30 天
DEFAULT_SUMMARY_DAYS = 30


@router.get("/history", response_model=List[HistoryResponse])
@transactional("查询用药历史")
async def list_history(
    medication_id: Optional[int] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session)
):
    """
    查询用药历史

    Args:
        medication_id: 药品ID（可选）
        start_date: 开始日期（可选）
        end_date: 结束日期（可选）
        limit: 限制数量（默认100）
        offset: 偏移量（默认0）
        user_id: 当前用户（依赖注入）
        session: 数据库会话（依赖注入）

    Returns:
        历史记录列表，按日期、时间倒序
    """
    records = await AdherenceTracker(session).list_history(
        user_id,
        medication_id=medication_id,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    return [HistoryResponse.model_validate(r) for r in records]


@router.get("/adherence/summary", response_model=AdherenceSummaryResponse)
@transactional("统计依从性")
async def adherence_summary(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session)
):
    """统计区间内各状态剂量数与依从率（默认截至今天的最近 30 天）"""
    end = end_date or today()
    start = start_date or shift_date(end, -(DEFAULT_SUMMARY_DAYS - 1))
    summary = await AdherenceTracker(session).summarize(user_id, start, end)
    return AdherenceSummaryResponse.from_summary(summary)
