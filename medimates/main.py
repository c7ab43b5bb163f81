"""
FastAPI应用入口

运行方式：
    方式1（推荐）：使用 uvicorn 命令
        uvicorn medimates.main:app --reload --host 0.0.0.0 --port 8000

    方式2：直接运行
        python -m medimates.main

访问地址：
    http://localhost:8000/docs
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from medimates import __version__
from medimates.app.api.routes import router
from medimates.app.config import settings
from medimates.app.middleware.exception_handler import (
    domain_exception_handler,
    exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from medimates.app.middleware.logging import LoggingMiddleware
from medimates.domain.errors import DomainError
from medimates.infrastructure.database.connection import dispose_engine, init_db

# 配置日志
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info("=" * 60)
    logger.info("系统启动中...")
    logger.info("=" * 60)

    try:
        if settings.AUTO_CREATE_TABLES:
            logger.info("自动建表...")
            await init_db()
            logger.info("   ✓ 数据表已就绪")
        else:
            logger.info("跳过自动建表（请使用 alembic upgrade head）")

        logger.info("=" * 60)
        logger.info("系统启动完成！")
        logger.info("=" * 60)
    except Exception as e:
        logger.error(f"系统启动失败: {e}", exc_info=True)
        raise

    yield  # 应用运行期间

    logger.info("系统正在关闭...")
    await dispose_engine()


def create_app() -> FastAPI:
    """创建并配置 FastAPI 应用"""
    application = FastAPI(title="MediMates 用药提醒服务", version=__version__, lifespan=lifespan)

    # 配置CORS
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_middleware(LoggingMiddleware)

    # 注册异常处理器
    application.add_exception_handler(DomainError, domain_exception_handler)
    application.add_exception_handler(RequestValidationError, validation_exception_handler)
    application.add_exception_handler(StarletteHTTPException, http_exception_handler)
    application.add_exception_handler(Exception, exception_handler)

    # 注册路由
    application.include_router(router)

    @application.get("/health")
    async def health():
        """健康检查"""
        return {"status": "healthy", "version": __version__}

    return application


app = create_app()


def run_server() -> None:
    """启动开发服务器"""
    import uvicorn

    uvicorn.run(
        "medimates.main:app",
        host=settings.APP_HOST,
        port=settings.APP_PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run_server()
