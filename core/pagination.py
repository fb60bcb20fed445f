"""Offset/limit paging over a fully materialized result set.

The report procedures return every matching row; paging happens here.
"""

import math
from typing import Any, Sequence

from core.models import Page


def paginate(rows: Sequence[dict[str, Any]], offset: int = 0, limit: int = 50) -> Page:
    """Slice rows[offset:offset + limit] and compute the pager fields.

    offset must be >= 0 and limit >= 1; the API layer enforces both.
    """
    if offset < 0 or limit < 1:
        raise ValueError("offset must be >= 0 and limit >= 1")
    total = len(rows)
    end = offset + limit
    return Page(
        items=list(rows[offset:end]),
        offset=offset,
        limit=limit,
        total=total,
        total_pages=math.ceil(total / limit),
        current_page=offset // limit + 1,
        has_next_page=end < total,
        has_previous_page=offset > 0,
    )
