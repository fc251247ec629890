#
# Copyright (C) 2023 Canonical Ltd.
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as
# published by the Free Software Foundation, either version 3 of the
# License, or (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.
#

"""HTTP server relaying every request to TARGET_URL.

Deployed in a spoke it chains both directions: a request arriving
through the load balancer is forwarded through hybrid NAT to the hub.
"""

import asyncio
import os
import sys
from typing import List, Optional

import aiohttp
from aiohttp import web
from oslo_log import log as logging

from hybrid_nat import payloads

LOG = logging.getLogger(__name__)

TIMEOUT = 15


def make_app(target_url: str, hostname: str, service: str,
             timeout: float = TIMEOUT) -> web.Application:
    """Returns the application.

    Errors reaching the target are answered with 502 Bad Gateway.

    :param target_url: where every request is relayed to.
    :param hostname: the host name reported in every response.
    :param service: the service name reported in every response.
    :param timeout: seconds to wait for the target.
    """

    async def on_startup(app: web.Application) -> None:
        app["session"] = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout))

    async def on_cleanup(app: web.Application) -> None:
        await app["session"].close()

    async def handle(request: web.Request) -> web.Response:
        try:
            async with request.app["session"].get(target_url) as response:
                body = await response.text(errors="replace")
                status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            LOG.warning(f"Proxying to {target_url} failed: {e!r}")
            return web.Response(
                status=502,
                text=(f"ERROR proxying to {target_url}: {e!r}\n"
                      f"Hostname: {hostname}\nService: {service}\n"),
                content_type="text/plain",
            )
        return web.Response(
            text=(f"Proxy OK\nHostname: {hostname}\nService: {service}\n"
                  f"Target: {target_url}\nTarget status: {status}\nTarget body:\n{body}\n"),
            content_type="text/plain",
        )

    app = web.Application()
    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)
    app.router.add_route("*", "/{tail:.*}", handle)
    return app


def main(argv: Optional[List[str]] = None):
    """Entry point for the HTTP proxy payload.

    :param argv: list of CLI arguments.
    """
    payloads.setup(argv)
    target_url = os.environ.get("TARGET_URL")
    if not target_url:
        print("TARGET_URL environment variable is required", file=sys.stderr)
        sys.exit(1)
    hostname, service = payloads.identity()
    port = payloads.port()
    LOG.info(f"Listening on port {port}, proxying to {target_url}")
    web.run_app(make_app(target_url, hostname, service), port=port, print=None)
