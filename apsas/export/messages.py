# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024-2025 The APSAS Developers

"""Where the export pipeline reports progress and outcome to a person.

Any object with ``loading``, ``destroy``, ``warning``, ``success`` and
``error`` methods, each taking a string (``destroy`` takes nothing),
will do.  A run of the pipeline shows at most one loading message and
finishes with exactly one of warning, success or error.
"""

from __future__ import annotations

import sys


class ConsoleMessages:
    """Print messages to the terminal."""

    def __init__(self, stream=None) -> None:
        self.stream = stream or sys.stdout
        self._loading: str | None = None

    def _print(self, prefix: str, msg: str) -> None:
        print(f"{prefix}{msg}", file=self.stream)

    def loading(self, msg: str) -> None:
        self._loading = msg
        self._print("", msg)

    def destroy(self) -> None:
        self._loading = None

    def warning(self, msg: str) -> None:
        self._print("WARNING: ", msg)

    def success(self, msg: str) -> None:
        self._print("", msg)

    def error(self, msg: str) -> None:
        self._print("ERROR: ", msg)


class RecordingMessages:
    """Keep messages in a list of ``(kind, text)`` pairs instead of showing them."""

    def __init__(self) -> None:
        self.log: list[tuple[str, str | None]] = []

    def loading(self, msg: str) -> None:
        self.log.append(("loading", msg))

    def destroy(self) -> None:
        self.log.append(("destroy", None))

    def warning(self, msg: str) -> None:
        self.log.append(("warning", msg))

    def success(self, msg: str) -> None:
        self.log.append(("success", msg))

    def error(self, msg: str) -> None:
        self.log.append(("error", msg))

    def terminal(self) -> list[tuple[str, str | None]]:
        """The warning, success and error messages."""
        return [m for m in self.log if m[0] in ("warning", "success", "error")]
