import logging
from contextlib import asynccontextmanager
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from localpickup.infrastructure.repositories import (
    SQLAlchemyOrderRepository,
    SQLAlchemyBusinessRepository
)

logger = logging.getLogger(__name__)


class UnitOfWork:
    """Одна транзакция на заказ и его позиции (и на точки продаж)"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def __call__(self):
        async with self._session_factory() as session:
            uow_impl = _UnitOfWorkImpl(session)
            try:
                yield uow_impl
            except Exception as e:
                logger.info(f"Транзакция откатывается: {type(e).__name__}")
                await session.rollback()
                raise
            # Без commit изменения не сохраняются
            if not uow_impl.committed:
                await session.rollback()


class _UnitOfWorkImpl:
    def __init__(self, session: AsyncSession):
        self._session = session
        self.committed = False
        self.orders = SQLAlchemyOrderRepository(session)
        self.businesses = SQLAlchemyBusinessRepository(session)

    async def commit(self):
        await self._session.commit()
        self.committed = True

    async def rollback(self):
        await self._session.rollback()
        self.committed = False
