"""
API 装饰器
统一处理路由的事务提交与回滚
"""
import logging
import functools
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from medimates.domain.errors import DomainError, StorageError

logger = logging.getLogger(__name__)


def transactional(action: str) -> Callable:
    """
    路由事务装饰器

    功能：
    1. 路由函数正常返回后提交事务
    2. 领域异常回滚后原样抛出，由全局异常处理器转换为对应的错误响应
    3. 数据库异常回滚并记录完整上下文，对外只返回通用的 StorageError

    路由函数必须通过关键字参数 session 接收数据库会话，并在函数内完成响应对象的构建。

    使用方式：
        @router.post("/reminders")
        @transactional("创建提醒")
        async def create_reminder(..., session: AsyncSession = Depends(get_async_session)):
            ...

    Args:
        action: 操作描述（用于日志）
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            session: AsyncSession = kwargs["session"]
            try:
                result = await func(*args, **kwargs)
                await session.commit()
                return result
            except DomainError as e:
                await session.rollback()
                logger.info(f"{action}失败: code={e.code}, error={e.message}")
                raise
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"{action}失败（数据库异常）: {e}", exc_info=True)
                raise StorageError() from e
        return wrapper
    return decorator
