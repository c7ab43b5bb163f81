"""
应用配置管理
使用 Pydantic Settings 管理配置
"""
from pathlib import Path
from typing import Optional, Union
from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def find_project_root() -> Path:
    """
    查找项目根目录（包含 .env 文件的目录）

    Returns:
        Path: 项目根目录路径
    """
    current = Path(__file__).resolve()
    # 当前文件位于 medimates/app/config.py，项目根目录应该是 current.parent.parent.parent
    project_root = current.parent.parent.parent

    env_file = project_root / ".env"
    if env_file.exists():
        return project_root

    # 如果项目根目录没有 .env，向上查找
    for parent in current.parents:
        env_file = parent / ".env"
        if env_file.exists():
            return parent

    return project_root


class Settings(BaseSettings):
    """应用配置"""

    model_config = SettingsConfigDict(
        env_file=str(find_project_root() / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    # 数据库配置：优先使用 DATABASE_URL，否则由 DB_* 拼接 PostgreSQL 连接串
    DATABASE_URL: Optional[str] = None
    DB_HOST: Optional[str] = None
    DB_PORT: Optional[int] = None
    DB_USER: Optional[str] = None
    DB_PASSWORD: Optional[str] = None
    DB_NAME: Optional[str] = None
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    AUTO_CREATE_TABLES: bool = Field(
        default=False,
        description="启动时是否自动建表（生产环境请使用 alembic 迁移）"
    )

    @property
    def ASYNC_DB_URI(self) -> str:
        """异步数据库连接 URI"""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        if not all([self.DB_HOST, self.DB_PORT, self.DB_USER, self.DB_PASSWORD, self.DB_NAME]):
            raise ValueError("数据库配置不完整，请设置 DATABASE_URL 或 DB_HOST, DB_PORT, DB_USER, DB_PASSWORD, DB_NAME")
        return f"postgresql+psycopg://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    @property
    def is_sqlite(self) -> bool:
        """当前连接是否为 SQLite（本地开发与测试）"""
        return self.ASYNC_DB_URI.startswith("sqlite")

    # SQL 日志配置
    DB_SQL_LOG_ENABLED: bool = False
    DB_SQL_LOG_LEVEL: str = "INFO"
    DB_SQL_LOG_INCLUDE_PARAMS: bool = False
    DB_SQL_LOG_SLOW_QUERY_THRESHOLD: float = Field(
        default=1.0,
        description="慢查询阈值（秒）"
    )

    # 应用配置
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 8000

    # 鉴权协作方注入的用户ID请求头（本服务信任该值，不做凭证校验）
    USER_ID_HEADER: str = "X-User-Id"
    # 资源存在但不属于当前用户时，是否以 404 隐藏其存在
    HIDE_FOREIGN_ENTITIES: bool = True
    # 是否允许已进入终态（taken/skipped/missed）的剂量再次变更状态
    ALLOW_STATUS_REVERSAL: bool = True

    # 提醒默认值
    DEFAULT_REMINDER_TIME: str = "09:00:00"
    DEFAULT_REMINDER_TITLE: str = "Medication Reminder"
    REMINDER_BATCH_SIZE: int = Field(
        default=100,
        description="惰性遍历提醒时每批读取的条数"
    )
    GENERATION_MAX_DAYS: int = Field(
        default=31,
        description="按日期范围生成提醒时允许的最大天数"
    )

    # 库存默认值
    INVENTORY_DEFAULT_UNIT: str = "tablet"
    INVENTORY_DEFAULT_THRESHOLD: int = 5

    @field_validator('REMINDER_BATCH_SIZE', 'GENERATION_MAX_DAYS', mode='before')
    @classmethod
    def _validate_positive(cls, v: Union[int, str, None], info: ValidationInfo) -> int:
        """验证正整数配置，空值时使用默认值"""
        if v is None or (isinstance(v, str) and v.strip() == ''):
            return cls.model_fields[info.field_name].default
        v = int(v)
        if v <= 0:
            raise ValueError("必须为正整数")
        return v


# 创建全局配置实例
settings = Settings()
