# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024-2025 The APSAS Developers

"""Same-origin relay for submission and requirement files."""

from .routes import FileProxyHandler
from .server import make_app, launch

__all__ = ["FileProxyHandler", "make_app", "launch"]
