"""
通用Schema
"""
from typing import Any, Dict
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """对外 JSON 使用 camelCase，输入同时接受 snake_case"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ErrorResponse(BaseModel):
    """错误响应"""
    error: str = Field(description="错误信息")
    code: str = Field(description="稳定的错误码")
    detail: Dict[str, Any] = Field(default_factory=dict, description="错误详情")


class MessageResponse(CamelModel):
    """操作结果"""
    success: bool = True
    message: str
