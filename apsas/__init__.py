# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024-2025 The APSAS Developers

"""APSAS grading export tools.

Gather grading groups and submissions from an APSAS server, arrange
them by course, template and lecturer, and bundle requirement documents
and student submissions into a single zip archive.
"""

__copyright__ = "Copyright (C) 2024-2025 The APSAS Developers"
__credits__ = "The APSAS Developers"
__license__ = "AGPL-3.0-or-later"

from .common import __version__, Default_Server, Default_Proxy_Port

__all__ = ["__version__", "Default_Server", "Default_Proxy_Port"]
