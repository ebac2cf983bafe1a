# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024-2025 The APSAS Developers

import asyncio
import logging

import aiohttp
from aiohttp import web


log = logging.getLogger("proxy")


class FileProxyHandler:
    """Fetch remote files on behalf of the export tools.

    Submission and requirement files live on remote storage; the
    export tools ask us for them by URL and we stream them back as an
    attachment.

    Args:
        session (aiohttp.ClientSession/None): for talking to the remote
            storage.  If None, the application's ``"client"`` is used.
    """

    def __init__(self, session=None):
        self._session = session

    def _client(self, request):
        return self._session or request.app["client"]

    # @routes.get("/api/file-proxy")
    async def file_proxy(self, request):
        """Stream back the file at the ``url`` query parameter.

        Responds with status 200/400/500, or with the upstream status
        if the remote end failed.  Errors are JSON ``{"error": ...}``.

        Args:
            request (aiohttp.web_request.Request): GET /api/file-proxy?url=...

        Returns:
            aiohttp.web_response.StreamResponse: the file, with a
            content disposition named after the last path segment.
        """
        url = request.query.get("url")
        if not url:
            return web.json_response({"error": "URL parameter is required"}, status=400)

        response = None
        try:
            async with self._client(request).get(
                url, headers={"Accept": "*/*"}
            ) as upstream:
                if upstream.status >= 400:
                    log.warning("upstream %s gave %s", url, upstream.status)
                    msg = f"Failed to fetch file: {upstream.status} {upstream.reason}"
                    return web.json_response({"error": msg}, status=upstream.status)
                filename = url.split("/")[-1] or "file"
                response = web.StreamResponse(
                    status=200,
                    headers={
                        "Content-Type": upstream.headers.get(
                            "Content-Type", "application/octet-stream"
                        ),
                        "Content-Disposition": f'attachment; filename="{filename}"',
                        "Access-Control-Allow-Origin": "*",
                        "Access-Control-Allow-Methods": "GET",
                    },
                )
                await response.prepare(request)
                async for chunk in upstream.content.iter_chunked(64 * 1024):
                    await response.write(chunk)
                await response.write_eof()
                log.debug("proxied %s", url)
                return response
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as err:
            if response is not None and response.prepared:
                # too late for a JSON error, headers already sent
                raise
            log.error("Error proxying file %s: %s", url, err)
            return web.json_response(
                {"error": str(err) or "Failed to proxy file"}, status=500
            )

    def setUpRoutes(self, router):
        """Adds the response functions to the router object.

        Args:
            router (aiohttp.web_urldispatcher.UrlDispatcher): Router object.
        """
        router.add_get("/api/file-proxy", self.file_proxy)
