# smas/models/base.py
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp, the representation every table column uses."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
