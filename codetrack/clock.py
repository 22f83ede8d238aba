"""Localized timestamps in the configured or system time zone."""

import logging
from datetime import datetime, tzinfo
from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

LINE_TIME_FORMAT = "%H:%M:%S"
MESSAGE_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

Clock = Callable[[Optional[str]], datetime]


def resolve_zone(time_zone: Optional[str]) -> Optional[tzinfo]:
    """Return the zone for an IANA name, or None for the system zone.

    Unknown names fall back to the system zone with a warning.
    """
    if not time_zone:
        return None
    try:
        return ZoneInfo(time_zone)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown time zone '{time_zone}', using system time zone")
        return None


def localized_now(time_zone: Optional[str] = None) -> datetime:
    """Current aware datetime in the given zone (system zone if None)."""
    zone = resolve_zone(time_zone)
    if zone is None:
        return datetime.now().astimezone()
    return datetime.now(zone)


def line_timestamp(moment: datetime) -> str:
    return moment.strftime(LINE_TIME_FORMAT)


def message_timestamp(moment: datetime) -> str:
    return moment.strftime(MESSAGE_TIME_FORMAT)
