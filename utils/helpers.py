from datetime import datetime, timezone
from decimal import Decimal
from flask import current_app


def utcnow():
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_datetime(datetime_obj):
    """Format datetime to an ISO-8601 string."""
    if not datetime_obj:
        return None
    return datetime_obj.isoformat()


def format_decimal(value):
    if value is None:
        return None
    return float(value) if isinstance(value, Decimal) else value


def percentage_score(correct, total):
    """Integer percentage of correct answers, rounded half-up."""
    if total <= 0:
        raise ValueError("total must be positive")
    return (200 * correct + total) // (2 * total)


def get_pagination(args, default_limit=20, max_limit=100):
    """Read ``page`` and ``limit`` query parameters, clamped to sane bounds."""
    try:
        page = int(args.get("page", 1))
    except (TypeError, ValueError):
        page = 1
    try:
        limit = int(args.get("limit", default_limit))
    except (TypeError, ValueError):
        limit = default_limit
    page = max(page, 1)
    limit = min(max(limit, 1), max_limit)
    return page, limit, (page - 1) * limit


def pagination_meta(page, limit, total):
    total_pages = (total + limit - 1) // limit
    return {
        "page": page,
        "limit": limit,
        "totalCount": total,
        "totalPages": total_pages,
        "hasNext": page * limit < total,
        "hasPrev": page > 1,
    }


def get_history_cache():
    """The per-application TTL cache for admin history and leaderboard views."""
    return current_app.extensions["history_cache"]
