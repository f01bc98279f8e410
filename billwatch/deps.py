"""Common FastAPI dependencies for consistent type annotations.

Usage:
    from billwatch.deps import CurrentUserId, Stores

    async def my_endpoint(stores: Stores, user_id: CurrentUserId):
        ...
"""

from typing import Annotated
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from billwatch.auth import get_current_user_id
from billwatch.database import get_db
from billwatch.repositories import RecurringStores, SQLAlchemyStores

DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUserId = Annotated[UUID, Depends(get_current_user_id)]


async def get_recurring_stores(db: DbSession) -> RecurringStores:
    """Stores bound to the request's session."""
    return SQLAlchemyStores(db)


Stores = Annotated[RecurringStores, Depends(get_recurring_stores)]

__all__ = ["CurrentUserId", "DbSession", "Stores", "get_recurring_stores"]
