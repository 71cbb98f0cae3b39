"""ID generation utilities."""

import time
import uuid
from typing import Optional


def generate_mutation_id(timestamp_ms: Optional[int] = None) -> str:
    """Generate the identifier of a queued local mutation.

    The millisecond timestamp keeps ids roughly sortable for humans reading
    the queue; the uuid suffix makes them unique.

    Args:
        timestamp_ms: Creation time in epoch milliseconds, defaults to now

    Returns:
        Identifier such as ``mutation_1706745600000_3f2a9c41d0b7``
    """
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"mutation_{timestamp_ms}_{uuid.uuid4().hex[:12]}"
