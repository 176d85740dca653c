import os
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()

APP_TIMEZONE = ZoneInfo(os.getenv("APP_TIMEZONE", "Asia/Shanghai"))

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def utcnow() -> datetime:
    """Naive UTC now, the storage format for row timestamps."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def local_now() -> datetime:
    """Naive wall-clock time in the service time zone."""
    return datetime.now(APP_TIMEZONE).replace(tzinfo=None)


def as_naive_utc(dt: datetime) -> datetime:
    """Return ``dt`` converted to UTC without tzinfo.

    Naive input is read as wall-clock time in the service time zone.
    """

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=APP_TIMEZONE)
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def format_timestamp(dt: datetime) -> str:
    return dt.strftime(TIMESTAMP_FORMAT)
