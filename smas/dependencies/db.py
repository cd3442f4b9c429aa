# smas/dependencies/db.py
from typing import AsyncContextManager, AsyncGenerator, Callable

from smas.infrastructure.database import get_session


async def get_session_dep() -> AsyncGenerator:
    async with get_session() as session:
        yield session


def get_session_factory() -> Callable[[], AsyncContextManager]:
    """For work that must outlive the request, e.g. a shielded workflow."""
    return get_session
