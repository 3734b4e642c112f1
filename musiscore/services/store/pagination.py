"""
MUSISCORE - Paginated Store Access

Reads complete result sets in bounded pages. Every full-table read of the
engine goes through here so no single query is ever asked for more than
STORE_PAGE_SIZE rows.
"""

import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from sqlalchemy import Select
from sqlalchemy.ext.asyncio import AsyncSession

from musiscore.core.config import settings

logger = logging.getLogger(__name__)

# fetch_page(offset, limit) -> rows
PageFetcher = Callable[[int, int], Awaitable[Sequence[Any]]]


async def fetch_all(fetch_page: PageFetcher, page_size: Optional[int] = None) -> List[Any]:
    """
    Collect every row by requesting successive ranges.

    Stops as soon as a page comes back shorter than page_size.
    Errors from fetch_page propagate unchanged.
    """
    page_size = page_size or settings.STORE_PAGE_SIZE
    if page_size <= 0:
        raise ValueError("page_size must be positive")

    rows: List[Any] = []
    offset = 0
    while True:
        page = await fetch_page(offset, page_size)
        rows.extend(page)
        if len(page) < page_size:
            break
        offset += page_size

    return rows


async def fetch_all_rows(
    session: AsyncSession,
    statement: Select,
    page_size: Optional[int] = None,
    scalars: bool = False,
) -> List[Any]:
    """
    Run a SELECT page by page.

    The statement must carry a deterministic ORDER BY, otherwise rows can
    move between pages.

    Args:
        session: Open async session
        statement: SELECT with projection, filters and ordering applied
        page_size: Rows per request (defaults to STORE_PAGE_SIZE)
        scalars: Return the first column of each row instead of Row objects
    """
    async def fetch_page(offset: int, limit: int) -> Sequence[Any]:
        result = await session.execute(statement.offset(offset).limit(limit))
        return result.scalars().all() if scalars else result.all()

    rows = await fetch_all(fetch_page, page_size)
    logger.debug(f"Fetched {len(rows)} rows in pages of {page_size or settings.STORE_PAGE_SIZE}")
    return rows
