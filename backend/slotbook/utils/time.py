from datetime import datetime, tzinfo
from functools import lru_cache
from zoneinfo import ZoneInfo


@lru_cache
def get_zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def local_now(tz: tzinfo) -> datetime:
    return datetime.now(tz)
