"""
API路由模块
聚合所有子路由
"""
from fastapi import APIRouter

from medimates.app.api.routes.medications import router as medications_router
from medimates.app.api.routes.reminders import router as reminders_router
from medimates.app.api.routes.history import router as history_router

# 创建主路由
router = APIRouter()

# 注册子路由（统一添加 /api/v1 前缀）
router.include_router(medications_router, prefix="/api/v1", tags=["药品与计划"])
router.include_router(reminders_router, prefix="/api/v1", tags=["提醒"])
router.include_router(history_router, prefix="/api/v1", tags=["用药历史"])

__all__ = ["router"]
