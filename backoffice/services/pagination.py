"""Shared paging and sort validation for list endpoints."""

import math
from typing import Iterable

from backoffice.exceptions import BadRequestError

MAX_PAGE_SIZE = 100


def check_page(page: int, limit: int) -> int:
    """Validate paging arguments and return the row offset.

    Raises:
        BadRequestError: If page < 1 or limit is outside 1..MAX_PAGE_SIZE
    """
    if page < 1:
        raise BadRequestError("page must be >= 1")
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise BadRequestError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
    return (page - 1) * limit


def check_sort(sort_by: str, sort_order: str, allowed: Iterable[str]) -> bool:
    """Validate sort options and return True for descending order."""
    if sort_by not in allowed:
        raise BadRequestError(f"Cannot sort by '{sort_by}'")
    order = sort_order.upper()
    if order not in ("ASC", "DESC"):
        raise BadRequestError("sortOrder must be ASC or DESC")
    return order == "DESC"


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit)
