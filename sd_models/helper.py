"""
Small helpers shared by the entity models.
"""

from datetime import UTC, date, datetime
from typing import Any, Awaitable, Callable, Mapping

# Values treated as true in annotations, following YAML 1.1 booleans
TRUE_VALUES = ("on", "true", "yes", "y")

AGGREGATE_INTERVALS = ("day", "week", "month", "year")


def now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(UTC).isoformat()


def parse_time(value: str | datetime | None) -> datetime | None:
    """Parse an ISO 8601 timestamp; datetimes and None pass through."""
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def get_annotations(permutation: Mapping[str, Any] | None, name: str) -> Any:
    """
    Get the value of an annotation.

    Args:
        permutation: Job permutation that may contain "annotations"
        name: Annotation name

    Returns:
        The annotation value, or None
    """
    if not permutation:
        return None
    annotations = permutation.get("annotations") or {}
    return annotations.get(name)


def convert_to_bool(value: Any) -> bool:
    """Convert a YAML-style boolean string (or a bool) to a bool."""
    if isinstance(value, bool):
        return value
    return str(value).lower() in TRUE_VALUES


def _period(timestamp: str | datetime, interval: str) -> Any:
    day: date = parse_time(timestamp).date()  # type: ignore[union-attr]
    if interval == "day":
        return day
    if interval == "week":
        return day.isocalendar()[:2]
    if interval == "month":
        return (day.year, day.month)
    if interval == "year":
        return day.year
    raise ValueError(f"Unsupported aggregate interval: {interval}")


async def get_all_records(
    fetch: Callable[[dict[str, Any]], Awaitable[list[Any]]],
    aggregate_interval: str,
    opts: Mapping[str, Any],
) -> list[list[Any]]:
    """
    Fetch every page of records and group them by time period.

    Pages are requested one after another; the next page is only requested
    when the previous one came back full.

    Args:
        fetch: Coroutine function returning one page of records for opts
        aggregate_interval: "day", "week", "month" or "year"
        opts: List options; must include "paginate" with "page" and "count"

    Returns:
        One list per period, in fetch order; records in a list share the
        period of their "create_time"
    """
    if aggregate_interval not in AGGREGATE_INTERVALS:
        raise ValueError(f"Unsupported aggregate interval: {aggregate_interval}")

    paginate = dict(opts["paginate"])
    groups: list[list[Any]] = []
    current = None

    while True:
        records = await fetch({**opts, "paginate": dict(paginate)})

        for record in records:
            period = _period(record.create_time, aggregate_interval)
            if not groups or period != current:
                groups.append([])
                current = period
            groups[-1].append(record)

        # last page
        if len(records) < paginate["count"]:
            return groups

        paginate["page"] += 1
