"""
Workhub Database Dependencies
"""

from typing import Annotated, AsyncGenerator

from fastapi import Depends, Request
from sqlmodel.ext.asyncio.session import AsyncSession


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get database session from the factory created in the lifespan."""
    session_factory = request.app.state.session_factory
    async with session_factory() as session:
        yield session


SessionDep = Annotated[AsyncSession, Depends(get_db)]
