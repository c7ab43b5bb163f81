"""
异常处理中间件
"""
import logging
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException

from medimates.app.config import settings
from medimates.domain.errors import AuthorizationError, DomainError, NotFoundError

logger = logging.getLogger(__name__)


async def domain_exception_handler(request: Request, exc: DomainError):
    """
    领域异常处理器

    按异常类型返回稳定的错误码；开启信息隐藏时，越权访问与资源不存在返回相同的 404。

    Args:
        request: FastAPI 请求对象
        exc: 领域异常对象

    Returns:
        JSON 响应
    """
    if isinstance(exc, AuthorizationError) and settings.HIDE_FOREIGN_ENTITIES:
        exc = NotFoundError("资源不存在")

    if exc.status_code >= 500:
        logger.error(f"[领域异常] {request.method} {request.url.path} - {exc.code}: {exc.message}")
    else:
        logger.warning(f"[领域异常] {request.method} {request.url.path} - {exc.code}: {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(exc.to_dict())
    )


async def exception_handler(request: Request, exc: Exception):
    """
    全局异常处理器

    Args:
        request: FastAPI 请求对象
        exc: 异常对象

    Returns:
        JSON 响应
    """
    logger.error(f"未处理的异常: {exc}", exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "内部服务器错误",
            "code": "INTERNAL_ERROR",
            "detail": str(exc) if settings.DEBUG else "请查看服务器日志"
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    请求验证异常处理器（与领域校验错误统一为 400）

    Args:
        request: FastAPI 请求对象
        exc: 验证异常对象

    Returns:
        JSON 响应
    """
    logger.warning(f"请求验证失败: {exc.errors()}")

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "请求验证失败",
            "code": "VALIDATION_ERROR",
            "detail": {"errors": jsonable_encoder(exc.errors())}
        }
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    HTTP 异常处理器

    Args:
        request: FastAPI 请求对象
        exc: HTTP 异常对象

    Returns:
        JSON 响应
    """
    codes = {
        status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
        status.HTTP_404_NOT_FOUND: "NOT_FOUND",
        status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
    }
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.detail,
            "code": codes.get(exc.status_code, "HTTP_ERROR"),
            "detail": {}
        },
        headers=getattr(exc, "headers", None)
    )
