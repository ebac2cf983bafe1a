# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024-2025 The APSAS Developers

"""Backend bits 'n bobs to talk to an APSAS server."""

from .messenger import Messenger, FileProxyPath

# No one should be calling BaseMessenger directly but maybe
# its useful for typing hints.
from .base_messenger import BaseMessenger

__all__ = ["Messenger", "FileProxyPath"]
