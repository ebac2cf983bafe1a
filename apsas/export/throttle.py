# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024-2025 The APSAS Developers

from __future__ import annotations

import time
from typing import Callable


class Throttle:
    """Keep consecutive downloads at least some interval apart.

    Call :meth:`wait` before each download: the first call returns at
    once, later calls sleep off whatever remains of the interval since
    the previous call returned.

    Args:
        min_interval: seconds between downloads, zero disables.

    Keyword Args:
        sleep: function to sleep, for testing.
        clock: monotonic clock, for testing.
    """

    def __init__(
        self,
        min_interval: float = 0.3,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if min_interval < 0:
            raise ValueError(f"interval cannot be negative: {min_interval}")
        self.min_interval = min_interval
        self._sleep = sleep
        self._clock = clock
        self._last: float | None = None

    def wait(self) -> None:
        if self._last is not None and self.min_interval > 0:
            remaining = self.min_interval - (self._clock() - self._last)
            if remaining > 0:
                self._sleep(remaining)
        self._last = self._clock()

    def reset(self) -> None:
        self._last = None
