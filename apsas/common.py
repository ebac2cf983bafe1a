# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024-2025 The APSAS Developers

from .version import __version__

import sys

if sys.version_info[0] == 2:
    raise RuntimeError("APSAS requires Python 3; it will not work with Python 2")

Default_Server = "https://aspas-edu.site/api"
Default_Proxy_Port = 3000
