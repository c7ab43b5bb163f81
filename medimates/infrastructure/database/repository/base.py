"""
仓储基类
"""
from typing import Any, Generic, List, Optional, Type, TypeVar
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from medimates.infrastructure.database.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    基础仓储类

    封装单表的通用 CRUD 操作。仓储只负责 flush，事务的提交与回滚由调用方（路由层）控制。
    """

    def __init__(self, session: AsyncSession, model: Type[ModelType]):
        """
        初始化仓储

        Args:
            session: 数据库会话
            model: 模型类
        """
        self.session = session
        self.model = model

    async def get_by_id(self, id: Any) -> Optional[ModelType]:
        """
        根据主键查询记录

        Args:
            id: 主键

        Returns:
            模型实例，不存在时返回 None
        """
        return await self.session.get(self.model, id)

    async def get_all(self, limit: int = 100, offset: int = 0) -> List[ModelType]:
        """
        分页查询全部记录

        Args:
            limit: 限制数量
            offset: 偏移量

        Returns:
            模型实例列表
        """
        result = await self.session.execute(
            select(self.model).limit(limit).offset(offset)
        )
        return list(result.scalars().all())

    async def create(self, **kwargs) -> ModelType:
        """
        创建记录

        Returns:
            新建的模型实例（已 flush，可取得自增ID）
        """
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        return instance

    async def update(self, id: Any, **kwargs) -> Optional[ModelType]:
        """
        更新记录

        Args:
            id: 主键
            **kwargs: 需要更新的字段

        Returns:
            更新后的模型实例，不存在时返回 None
        """
        instance = await self.get_by_id(id)
        if instance is None:
            return None
        for key, value in kwargs.items():
            setattr(instance, key, value)
        await self.session.flush()
        return instance

    async def delete(self, id: Any) -> bool:
        """
        删除记录

        Args:
            id: 主键

        Returns:
            是否删除成功
        """
        instance = await self.get_by_id(id)
        if instance is None:
            return False
        await self.session.delete(instance)
        await self.session.flush()
        return True
