"""
日志中间件
"""
import logging
import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from medimates.app.config import settings

logger = logging.getLogger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    """请求日志中间件：记录方法、路径、用户、状态码和耗时"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        client_host = request.client.host if request.client else "unknown"
        user_id = request.headers.get(settings.USER_ID_HEADER) or "匿名"
        query_params = dict(request.query_params) if request.query_params else {}

        logger.info(
            f"[HTTP请求开始] {request.method} {request.url.path} - "
            f"客户端: {client_host} - 用户: {user_id} - "
            f"查询参数: {query_params if query_params else '无'}"
        )

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.error(
                f"[HTTP请求异常] {request.method} {request.url.path} - "
                f"异常: {str(e)} - "
                f"处理时间: {process_time:.3f}s",
                exc_info=True
            )
            raise

        process_time = time.time() - start_time
        logger.info(
            f"[HTTP请求完成] {request.method} {request.url.path} - "
            f"状态码: {response.status_code} - "
            f"处理时间: {process_time:.3f}s"
        )
        response.headers["X-Process-Time"] = f"{process_time:.3f}"
        return response
