"""Cron expression helpers. Pure functions, nothing is persisted."""
from datetime import datetime
from typing import List

from croniter import croniter


def next_runs(expression: str, start: datetime, count: int = 5) -> List[datetime]:
    """
    Compute upcoming fire times.

    Args:
        expression: Cron expression (5 or 6 fields)
        start: Reference time, results are strictly after it
        count: Number of fire times

    Returns:
        Fire times in ascending order, in the timezone of start
    """
    iterator = croniter(expression, start)
    return [iterator.get_next(datetime) for _ in range(count)]
