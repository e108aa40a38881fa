from __future__ import annotations

from typing import Any, Dict, Sequence


# PUBLIC_INTERFACE
def paginate(items: Sequence[Any], limit: int, offset: int) -> Dict[str, Any]:
    """
    Slice items for one page and wrap them in the standard list envelope.

    Returns:
        Dict with keys: items (the page), total (len of all items), limit, offset.
    """
    limit = max(limit, 0)
    offset = max(offset, 0)
    return {
        "items": list(items[offset:offset + limit]),
        "total": len(items),
        "limit": limit,
        "offset": offset,
    }
