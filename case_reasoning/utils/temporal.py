# case_reasoning/utils/temporal.py

from datetime import datetime
from typing import Optional, Tuple, Union

DateLike = Union[str, datetime, None]


def parse_datetime(value: DateLike) -> Optional[datetime]:
    """Parse an ISO-8601 string (a trailing 'Z' is accepted). Returns None on anything unparseable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _epoch_seconds(moment: datetime) -> float:
    # naive datetimes are compared as-is against each other
    if moment.tzinfo is None:
        return (moment - datetime(1970, 1, 1)).total_seconds()
    return moment.timestamp()


def time_interval(earliest: DateLike, latest: DateLike = None) -> Optional[Tuple[float, float]]:
    """
    Interval in epoch seconds for a time reference. The end falls back to the start
    when `latest` is missing or unparseable; no start means no interval.
    """
    start = parse_datetime(earliest)
    if start is None:
        return None
    end = parse_datetime(latest) or start
    start_s, end_s = _epoch_seconds(start), _epoch_seconds(end)
    if end_s < start_s:
        start_s, end_s = end_s, start_s
    return start_s, end_s


def overlap_minutes(interval1: Tuple[float, float], interval2: Tuple[float, float]) -> float:
    """Minutes shared by two intervals; zero or negative when they do not overlap."""
    overlap_start = max(interval1[0], interval2[0])
    overlap_end = min(interval1[1], interval2[1])
    return (overlap_end - overlap_start) / 60.0


def sort_timestamp(value: DateLike) -> float:
    """Sort key for optional dates; missing dates sort first."""
    parsed = parse_datetime(value)
    return _epoch_seconds(parsed) if parsed else 0.0
