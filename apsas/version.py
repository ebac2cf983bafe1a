# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024-2025 The APSAS Developers

"""APSAS version string, read by setup.py without importing the package."""

__version__ = "0.4.0.dev0"
