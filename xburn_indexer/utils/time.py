from datetime import datetime, timedelta, timezone

SECONDS_PER_DAY = 86400


def utc_now() -> datetime:
    """Naive UTC now, matching the DateTime columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def from_unix(timestamp: int) -> datetime:
    return datetime.fromtimestamp(int(timestamp), tz=timezone.utc).replace(tzinfo=None)


def maturity_from(created_at: datetime, term_days: int) -> datetime:
    return created_at + timedelta(seconds=int(term_days) * SECONDS_PER_DAY)
