# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024-2025 The APSAS Developers

from __future__ import annotations

import re
from typing import Any

import arrow


# ------------------------------------------------
# some time conversion tools put here nice and central


def json_to_arrow(timestring: str | None) -> arrow.Arrow | None:
    """Parse a server timestamp, or None if there isn't a usable one.

    The server sometimes omits the timezone: such strings are taken
    to be in UTC, which is what arrow does by default.
    """
    if not timestring:
        return None
    try:
        return arrow.get(timestring)
    except (TypeError, ValueError):
        return None


def timestamp_to_millis(timestring: str | None) -> int:
    """Milliseconds since the epoch, with missing or junk timestamps as zero."""
    t = json_to_arrow(timestring)
    if t is None:
        return 0
    return int(t.timestamp() * 1000)


def is_in_future(timestring: str | None, now: Any = None) -> bool:
    """Is this timestamp strictly later than now?

    Args:
        timestring: a timestamp from the server.
        now: anything arrow can parse, defaults to the current time.

    Returns:
        False if the timestamp is missing or unparseable.
    """
    t = json_to_arrow(timestring)
    if t is None:
        return False
    now = arrow.utcnow() if now is None else arrow.get(now)
    return t > now


def utc_now_millis() -> int:
    return int(arrow.utcnow().timestamp() * 1000)


# ---------------------------------------------
# filenames
# ---------------------------------------------


def sanitize_name(s: str) -> str:
    """Replace everything but ASCII letters and digits with underscores.

    Used to build folder and file names inside the zip archive.

    Example: ``"Intro to C#"`` becomes ``"Intro_to_C_"``.
    """
    return re.sub(r"[^a-zA-Z0-9]", "_", s)
