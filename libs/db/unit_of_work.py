"""Explicit transaction scope for every data-mutating operation.

Usage:
    async with UnitOfWork(db) as uow:
        orders = OrderRepository(uow)
        ...

Leaving the block normally commits; any exception rolls the whole scope back
and propagates. Repositories refuse to work against a scope that is not open,
so a write can never silently skip its transaction.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession

from libs.common.logging import get_logger

logger = get_logger(__name__)


class UnitOfWork:
    def __init__(self, session: AsyncSession):
        self.session = session
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    async def __aenter__(self) -> "UnitOfWork":
        if self._open:
            raise RuntimeError("UnitOfWork is already open")
        self._open = True
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        self._open = False
        if exc_type is not None:
            await self.session.rollback()
            return False
        try:
            await self.session.commit()
        except Exception:
            logger.exception("Commit failed, rolling back")
            await self.session.rollback()
            raise
        return False

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator["UnitOfWork"]:
        """Nested transaction; an exception rolls back only this block."""
        self.ensure_open()
        async with self.session.begin_nested():
            yield self

    def ensure_open(self) -> None:
        if not self._open:
            raise RuntimeError("Data mutation attempted outside a UnitOfWork")


class Repository:
    """Base for repositories bound to an open UnitOfWork."""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    @property
    def session(self) -> AsyncSession:
        self.uow.ensure_open()
        return self.uow.session
