# utils/pagination.py
from django.conf import settings
from django.core.paginator import EmptyPage, Paginator

from ..exceptions import ValidationError


def parse_page_params(params):
    """
    Read ``page`` and ``limit`` from query parameters.
    """
    default_limit = getattr(settings, "BOOKMARKET_PAGE_SIZE", 10)
    max_limit = getattr(settings, "BOOKMARKET_MAX_PAGE_SIZE", 100)
    try:
        page = int(params.get("page") or 1)
        limit = int(params.get("limit") or default_limit)
    except ValueError:
        raise ValidationError("page and limit must be integers")

    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be positive")
    return page, min(limit, max_limit)


def paginate(object_list, page, limit, serialize):
    """
    Build the page envelope for ``object_list`` (queryset or list).
    Pages past the end come back with an empty ``data`` list.
    """
    paginator = Paginator(object_list, limit)
    try:
        items = paginator.page(page).object_list
    except EmptyPage:
        items = []

    total = paginator.count
    total_pages = paginator.num_pages if total else 0
    return {
        "success": True,
        "data": [serialize(item) for item in items],
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "totalPages": total_pages,
            "hasNextPage": page < total_pages,
            "hasPrevPage": page > 1,
        },
    }
