"""Unit-of-work helper shared by the marketplace operations."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from libs.common.logging import get_logger
from libs.db.session import transaction
from services.marketplace_service.errors import TransactionFailed
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@asynccontextmanager
async def atomic(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Run the block as one transaction.

    Commits on success. Any exception rolls back every write made inside the
    block; database errors surface as ``TransactionFailed``.
    """
    try:
        async with transaction(db):
            yield db
    except SQLAlchemyError as e:
        logger.error("Transaction rolled back: %s", e, exc_info=True)
        raise TransactionFailed() from e
