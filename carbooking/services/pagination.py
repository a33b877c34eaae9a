from typing import Any, Dict, List, Tuple

MAX_PAGE_SIZE = 100


def paginate(query, page: int = 1, limit: int = 20) -> Tuple[List[Any], Dict[str, int]]:
    """Apply offset/limit to an ordered query and build the pagination block."""
    limit = min(max(1, limit), MAX_PAGE_SIZE)
    page = max(1, page)
    offset = (page - 1) * limit

    total = query.count()
    rows = query.offset(offset).limit(limit).all()
    return rows, {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": (total + limit - 1) // limit if limit > 0 else 0,
    }
