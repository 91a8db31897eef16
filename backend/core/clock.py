"""Wall-clock access for request and CLI entry points.

Domain functions take ``today``/``now`` as arguments; only the outer layers
read the clock, and they do it here.
"""

from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

from backend.core.config import settings


def business_now() -> datetime:
    return datetime.now(ZoneInfo(settings.BUSINESS_TIMEZONE))


def business_today() -> date:
    return business_now().date()
