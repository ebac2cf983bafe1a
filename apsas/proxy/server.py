# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024-2025 The APSAS Developers

"""A small web server relaying remote files to the export tools."""

import logging

import aiohttp
from aiohttp import web

from apsas import __version__, Default_Proxy_Port
from .routes import FileProxyHandler


log = logging.getLogger("proxy")


async def _client_session(app):
    app["client"] = aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(total=None, sock_connect=15, sock_read=90)
    )
    yield
    await app["client"].close()


def make_app():
    """Build the aiohttp application with the file-proxy route."""
    app = web.Application()
    app.cleanup_ctx.append(_client_session)
    FileProxyHandler().setUpRoutes(app.router)
    return app


def launch(*, host="127.0.0.1", port=Default_Proxy_Port):
    """Run the file proxy until interrupted.

    Keyword Args:
        host (str): address to bind.
        port (int): port to listen on.
    """
    log.info("APSAS file proxy %s on %s:%s", __version__, host, port)
    # Special treatment for chatty modules
    if logging.getLogger().getEffectiveLevel() >= logging.INFO:
        logging.getLogger("aiohttp.access").setLevel("WARNING")
    web.run_app(make_app(), host=host, port=port)
