"""ID helpers."""

from __future__ import annotations

import uuid


def new_id() -> str:
    """Random UUID4 in its canonical dashed form, matching stored row ids."""
    return str(uuid.uuid4())
