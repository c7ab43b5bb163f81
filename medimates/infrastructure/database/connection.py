"""
数据库连接和会话管理
"""
import time
import logging
from typing import AsyncGenerator, Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
)

from medimates.app.config import settings
from medimates.infrastructure.database.base import Base

# SQL日志记录器
sql_logger = logging.getLogger("medimates.infrastructure.database.connection")

# 全局变量
_async_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def _format_params(parameters):
    """将 SQL 参数转换为可记录的格式（限制数量和长度，避免日志过大）"""
    if not settings.DB_SQL_LOG_INCLUDE_PARAMS or not parameters:
        return None
    if isinstance(parameters, (list, tuple)):
        log_params = list(parameters[:10])
        if len(parameters) > 10:
            log_params.append(f"... (还有 {len(parameters) - 10} 个参数)")
        return log_params
    return str(parameters)[:500]


def setup_db_logging(engine: AsyncEngine) -> None:
    """
    设置数据库SQL日志监听器

    通过SQLAlchemy事件系统监听SQL执行，记录SQL语句、参数、执行时间等信息

    Args:
        engine: SQLAlchemy引擎实例
    """
    if not settings.DB_SQL_LOG_ENABLED:
        return

    log_level = getattr(logging, settings.DB_SQL_LOG_LEVEL.upper(), logging.INFO)
    sql_logger.setLevel(log_level)

    @event.listens_for(engine.sync_engine, "before_cursor_execute")
    def receive_before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        # 使用栈结构支持嵌套查询
        conn.info.setdefault('query_start_time', []).append(time.time())

        if sql_logger.isEnabledFor(logging.DEBUG):
            sql_logger.debug(
                "Executing SQL",
                extra={
                    "event": "before_cursor_execute",
                    "sql": statement.strip(),
                    "parameters": _format_params(parameters),
                    "executemany": executemany
                }
            )

    @event.listens_for(engine.sync_engine, "after_cursor_execute")
    def receive_after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        if not conn.info.get('query_start_time'):
            return
        start_time = conn.info['query_start_time'].pop(-1)
        duration_ms = (time.time() - start_time) * 1000
        is_slow_query = duration_ms > (settings.DB_SQL_LOG_SLOW_QUERY_THRESHOLD * 1000)

        extra = {
            "event": "after_cursor_execute",
            "sql": statement.strip(),
            "parameters": _format_params(parameters),
            "duration_ms": round(duration_ms, 2),
            "is_slow_query": is_slow_query,
            "executemany": executemany
        }

        if is_slow_query:
            extra["threshold_ms"] = settings.DB_SQL_LOG_SLOW_QUERY_THRESHOLD * 1000
            sql_logger.warning("Slow SQL query detected", extra=extra)
        else:
            sql_logger.info("SQL executed successfully", extra=extra)

    @event.listens_for(engine.sync_engine, "handle_error")
    def receive_handle_error(exception_context):
        sql = exception_context.statement.strip() if exception_context.statement else ""
        sql_logger.error(
            "SQL execution error",
            extra={
                "event": "handle_error",
                "sql": sql,
                "parameters": _format_params(exception_context.parameters),
                "error": str(exception_context.original_exception),
                "error_type": type(exception_context.original_exception).__name__
            },
            exc_info=exception_context.original_exception
        )


def configure_sqlite_engine(engine: AsyncEngine) -> None:
    """
    SQLite 连接设置

    驱动默认延迟发出 BEGIN，SAVEPOINT 无法正确嵌套；改为由 SQLAlchemy 显式发出 BEGIN。
    同时打开默认关闭的外键约束。
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


def get_async_engine() -> AsyncEngine:
    """
    获取异步数据库引擎（单例模式）

    Returns:
        AsyncEngine: SQLAlchemy 异步引擎
    """
    global _async_engine
    if _async_engine is None:
        if settings.is_sqlite:
            _async_engine = create_async_engine(
                settings.ASYNC_DB_URI,
                echo=settings.DEBUG,
            )
            configure_sqlite_engine(_async_engine)
        else:
            _async_engine = create_async_engine(
                settings.ASYNC_DB_URI,
                echo=settings.DEBUG,
                pool_pre_ping=True,  # 连接前检查连接是否有效
                pool_size=settings.DB_POOL_SIZE,
                max_overflow=settings.DB_MAX_OVERFLOW,
            )
        setup_db_logging(_async_engine)
    return _async_engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    获取异步会话工厂（单例模式）

    Returns:
        async_sessionmaker: 异步会话工厂
    """
    global _session_factory
    if _session_factory is None:
        engine = get_async_engine()
        _session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    获取异步数据库会话（依赖注入）

    Yields:
        AsyncSession: 异步数据库会话
    """
    session_factory = get_session_factory()
    async with session_factory() as session:
        yield session


async def init_db() -> None:
    """
    初始化数据库（创建表）
    """
    engine = get_async_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """关闭连接池"""
    global _async_engine, _session_factory
    if _async_engine is not None:
        await _async_engine.dispose()
    _async_engine = None
    _session_factory = None
