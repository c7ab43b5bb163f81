"""
领域异常定义

每类异常携带稳定的错误码（code）和对应的 HTTP 状态码，
由全局异常处理器统一转换为 JSON 响应。
"""
from typing import Any, Dict, Optional


class DomainError(Exception):
    """领域异常基类"""

    code = "DOMAIN_ERROR"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "code": self.code,
            "detail": self.details,
        }


class ValidationError(DomainError):
    """输入格式错误或缺少必填字段"""

    code = "VALIDATION_ERROR"
    status_code = 400


class AuthorizationError(DomainError):
    """资源存在，但不属于当前用户"""

    code = "FORBIDDEN"
    status_code = 403


class NotFoundError(DomainError):
    """资源不存在"""

    code = "NOT_FOUND"
    status_code = 404


class ConflictError(DomainError):
    """与现有数据冲突（重复时间槽、被引用的药品、不可变记录等）"""

    code = "CONFLICT"
    status_code = 409


class StorageError(DomainError):
    """底层存储失败，对外只暴露通用信息"""

    code = "STORAGE_ERROR"
    status_code = 500

    def __init__(self, message: str = "存储服务异常，请稍后重试", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
