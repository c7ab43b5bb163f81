"""
数据库模块
"""
from medimates.infrastructure.database.base import Base
from medimates.infrastructure.database.connection import (
    get_async_engine,
    get_session_factory,
    get_async_session,
    configure_sqlite_engine,
    init_db,
    dispose_engine,
)
from medimates.infrastructure.database import models  # 导入所有模型

__all__ = [
    "Base",
    "get_async_engine",
    "get_session_factory",
    "get_async_session",
    "configure_sqlite_engine",
    "init_db",
    "dispose_engine",
]
