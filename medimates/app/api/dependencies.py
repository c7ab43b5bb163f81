"""
API 依赖项
"""
import logging
from fastapi import HTTPException, Request, status

from medimates.app.config import settings

logger = logging.getLogger(__name__)


async def get_current_user_id(request: Request) -> str:
    """
    从认证网关注入的请求头中读取用户ID

    认证由上游完成，这里只信任该请求头，不做任何凭证校验。

    Raises:
        HTTPException: 请求头缺失（401）
    """
    user_id = request.headers.get(settings.USER_ID_HEADER)
    if not user_id or not user_id.strip():
        logger.warning(f"请求缺少用户标识头: {settings.USER_ID_HEADER} {request.method} {request.url.path}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"缺少用户标识: {settings.USER_ID_HEADER}"
        )
    return user_id.strip()
