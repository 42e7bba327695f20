# Overview: Shared reporting-window filter (named range or explicit day) for list/report queries.

from __future__ import annotations

from ..time_utils import day_bounds, range_start
from ..validation import ValidationError


def filter_by_period(query, column, *, time_range: str | None = None, date: str | None = None):
    """
    Restrict query to a reporting window on column.

    An explicit date (YYYY-MM-DD) takes precedence over time_range.
    Bad input surfaces as ValidationError.
    """
    try:
        if date:
            start, end = day_bounds(date)
            return query.filter(column >= start, column < end)
        start = range_start(time_range)
    except ValueError as exc:
        raise ValidationError(str(exc))

    if start is not None:
        query = query.filter(column >= start)
    return query
