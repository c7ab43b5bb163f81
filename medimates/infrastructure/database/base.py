"""
SQLAlchemy Base 定义
"""
from sqlalchemy import MetaData
from sqlalchemy.orm import declarative_base

# 统一约束命名，保证 alembic 迁移在 PostgreSQL 与 SQLite 上生成的约束名一致
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

Base = declarative_base(metadata=MetaData(naming_convention=NAMING_CONVENTION))
