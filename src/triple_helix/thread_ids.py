"""Thread and content identifier helpers.

Thread ids issued by the content service look like ``thread-T2-001``: the
digit group after the ``thread-T`` prefix names the tube the thread was first
assigned to. ``parse_tube_number`` reads that group back. It is a
compatibility shim for snapshots whose tube/thread association was lost, not
a source of truth; a tube's ``thread_id`` always wins when it matches.
"""
import re
from typing import Optional

from triple_helix.models import TUBE_NUMBERS

THREAD_PREFIX = "thread-T"

_THREAD_PATTERN = re.compile(r"^" + re.escape(THREAD_PREFIX) + r"(\d+)(?:-|$)")


def parse_tube_number(thread_id: str) -> Optional[int]:
    """Extract the tube number from a ``thread-T<n>[-...]`` id, or None."""
    if not thread_id:
        return None
    match = _THREAD_PATTERN.match(thread_id)
    if not match:
        return None
    tube_number = int(match.group(1))
    return tube_number if tube_number in TUBE_NUMBERS else None


def placeholder_thread_id(tube_number: int) -> str:
    return f"{THREAD_PREFIX}{tube_number}-001"


def placeholder_content_id(tube_number: int) -> str:
    return f"stitch-T{tube_number}-001-01"
