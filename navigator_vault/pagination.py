"""
Pagination and list helpers.

The backend reports "no more pages" either with a missing token or with
the literal string ``"null"``.
"""
import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Optional, TypeVar

from .models import ListOptions, Paginated

logger = logging.getLogger("navigator.vault")

T = TypeVar("T")

NULL_TOKEN = "null"


def normalize_token(token: Optional[str]) -> Optional[str]:
    if not token or token == NULL_TOKEN:
        return None
    return token


async def paginate(
    fetch_page: Callable[[ListOptions], Awaitable[Paginated]],
    options: Optional[ListOptions] = None,
) -> list:
    """Fetch every page and concatenate the items.

    Args:
        fetch_page: Coroutine function receiving the list options with the
            current ``next_token``.
        options: Initial list options (not mutated).

    Returns:
        All items, in page order.
    """
    options = (options or ListOptions()).model_copy()
    results: list = []
    pages = 0
    while True:
        page = await fetch_page(options)
        pages += 1
        results.extend(page.items)
        token = normalize_token(page.next_token)
        if token is None:
            break
        options = options.model_copy(update={"next_token": token})
    logger.debug("Paginated %d item(s) over %d page(s)", len(results), pages)
    return results


async def handle_list_errors(
    original_items: Sequence[Any],
    coros: Sequence[Awaitable[T]],
    concurrency: int = 1,
) -> tuple[list[T], list[dict[str, Any]]]:
    """Await list item coroutines with bounded concurrency.

    Failed items are reported as ``{"id", "error"}`` instead of failing
    the whole list.
    """
    semaphore = asyncio.Semaphore(concurrency)

    async def _limited(coro: Awaitable[T]) -> T:
        async with semaphore:
            return await coro

    results = await asyncio.gather(
        *(_limited(coro) for coro in coros), return_exceptions=True
    )
    items: list[T] = []
    errors: list[dict[str, Any]] = []
    for original, result in zip(original_items, results):
        if isinstance(result, BaseException):
            item_id = getattr(original, "id", None)
            logger.warning("Failed to process list item id=%s: %s", item_id, result)
            errors.append({"id": item_id, "error": result})
        else:
            items.append(result)
    return items, errors
