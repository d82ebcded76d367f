from datetime import datetime, tzinfo
from typing import Optional

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_timestamp(moment: Optional[datetime] = None, tz: Optional[tzinfo] = None) -> str:
    """Render ``moment`` (default: now) as ``YYYY-MM-DD HH:MM:SS``.

    Without ``tz`` the server's local time zone is used.
    """
    if moment is None:
        moment = datetime.now(tz)
    elif tz is not None:
        moment = moment.astimezone(tz)
    return moment.strftime(TIMESTAMP_FORMAT)
