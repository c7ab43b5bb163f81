#!/usr/bin/env python
"""
数据库初始化脚本

功能：
- 自动创建 PostgreSQL 数据库（如果不存在）
- 验证数据库连接
- 可选直接建表（开发环境；生产环境请使用 alembic upgrade head）

使用方式：
    python scripts/init_db.py
    python scripts/init_db.py --create-tables
"""
import argparse
import asyncio
import sys
from urllib.parse import urlparse, urlunparse

from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError, ProgrammingError, SQLAlchemyError

from medimates.app.config import settings
from medimates.infrastructure.database.connection import dispose_engine, init_db


def get_server_url(database_url: str) -> str:
    """
    从数据库 URL 中提取服务器连接 URL（连接到默认数据库 postgres）

    Args:
        database_url: 完整的数据库连接 URL

    Returns:
        服务器连接 URL
    """
    parsed = urlparse(database_url)
    return urlunparse((parsed.scheme, parsed.netloc, "/postgres", parsed.params, parsed.query, parsed.fragment))


def get_database_name(database_url: str) -> str:
    db_name = urlparse(database_url).path.lstrip("/")
    if not db_name:
        raise ValueError("数据库 URL 中未指定数据库名")
    return db_name


def create_database(database_url: str) -> bool:
    """
    创建 PostgreSQL 数据库（如果不存在）

    psycopg3 同时支持同步模式，这里直接使用 postgresql+psycopg:// 连接串。

    Args:
        database_url: 完整的数据库连接 URL

    Returns:
        bool: 成功返回 True，失败返回 False
    """
    db_name = get_database_name(database_url)
    server_url = get_server_url(database_url)
    print(f"目标数据库: {db_name}")

    engine = create_engine(server_url, isolation_level="AUTOCOMMIT")
    try:
        with engine.connect() as conn:
            exists = conn.execute(
                text("SELECT 1 FROM pg_database WHERE datname = :db_name"),
                {"db_name": db_name}
            ).fetchone() is not None
            if exists:
                print(f"✓ 数据库 '{db_name}' 已存在")
                return True

            print(f"正在创建数据库 '{db_name}'...")
            conn.execute(text(f'CREATE DATABASE "{db_name}"'))
            print(f"✓ 数据库 '{db_name}' 创建成功")
            return True
    except OperationalError as e:
        print(f"✗ 数据库连接失败: {e}")
        print("  请检查：")
        print("  1. 数据库服务器是否已启动")
        print("  2. 连接信息是否正确（用户名、密码、主机、端口）")
        print("  3. 用户是否有创建数据库的权限")
        return False
    except ProgrammingError as e:
        print(f"✗ 创建数据库失败: {e}")
        return False
    finally:
        engine.dispose()


def check_database_connection(database_url: str) -> bool:
    """验证数据库连接"""
    print("正在验证数据库连接...")
    engine = create_engine(database_url)
    try:
        with engine.connect() as conn:
            ok = conn.execute(text("SELECT 1")).scalar() == 1
    except SQLAlchemyError as e:
        print(f"✗ 数据库连接失败: {e}")
        return False
    finally:
        engine.dispose()
    print("✓ 数据库连接验证成功" if ok else "✗ 数据库连接验证失败")
    return ok


async def create_tables() -> None:
    try:
        await init_db()
    finally:
        await dispose_engine()


def main():
    """主函数"""
    parser = argparse.ArgumentParser(description="数据库初始化脚本")
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="直接按模型建表（开发环境使用，生产环境请使用 alembic upgrade head）"
    )
    args = parser.parse_args()

    print("=" * 60)
    print("数据库初始化脚本")
    print("=" * 60)

    try:
        database_url = settings.ASYNC_DB_URI
    except ValueError as e:
        print(f"✗ 配置错误: {e}")
        print("请在 .env 中设置 DATABASE_URL，或 DB_HOST, DB_PORT, DB_USER, DB_PASSWORD, DB_NAME")
        sys.exit(1)

    if settings.is_sqlite:
        print("SQLite 数据库无需预先创建")
    else:
        if not create_database(database_url):
            sys.exit(1)
        if not check_database_connection(database_url):
            sys.exit(1)

    if args.create_tables:
        print("正在建表...")
        asyncio.run(create_tables())
        print("✓ 数据表创建完成")
    else:
        print("下一步：alembic upgrade head")


if __name__ == "__main__":
    main()
