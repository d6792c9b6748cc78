from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
