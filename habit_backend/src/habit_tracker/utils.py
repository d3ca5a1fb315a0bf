from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Sequence, Union

# Stand-in for an unset reset marker
FAR_PAST = datetime.min


def calendar_day(moment: Union[date, datetime]) -> date:
    return moment.date() if isinstance(moment, datetime) else moment


def is_same_day(a: Union[date, datetime], b: Union[date, datetime]) -> bool:
    return calendar_day(a) == calendar_day(b)


def previous_day(day: date) -> date:
    return day - timedelta(days=1)


def next_occurrence(now: datetime, hour: int, minute: int) -> datetime:
    """The next wall-clock moment at hour:minute strictly after ``now``."""
    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


# PUBLIC_INTERFACE
def pagination_envelope(
    items: Union[Sequence[Any], Iterable[Any]],
    total: int,
    limit: int,
    offset: int,
) -> Dict[str, Any]:
    """
    Build a standard pagination envelope for list endpoints.

    Args:
        items: The list/iterable of items for the current page.
        total: Total number of items that match the query (ignoring pagination).
        limit: The limit used for pagination.
        offset: The offset used for pagination.

    Returns:
        Dict with keys: items, total, limit, offset.
    """
    materialized: List[Any] = list(items) if not isinstance(items, list) else items
    return {
        "items": materialized,
        "total": int(total),
        "limit": int(max(limit, 0)),
        "offset": int(max(offset, 0)),
    }
