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

"""HTTP server answering every request after a fixed delay.

The delay keeps requests in flight long enough for Cloud Run to scale
out under load.
"""

import asyncio
import os
from typing import List, Optional

from aiohttp import web
from oslo_log import log as logging

from hybrid_nat import payloads

LOG = logging.getLogger(__name__)

DEFAULT_DELAY = 10.0


def make_app(hostname: str, service: str, delay: float = DEFAULT_DELAY) -> web.Application:
    """Returns the application.

    :param hostname: the host name reported in every response.
    :param service: the service name reported in every response.
    :param delay: seconds to wait before answering.
    """

    async def handle(request: web.Request) -> web.Response:
        if delay > 0:
            await asyncio.sleep(delay)
        return web.Response(text=f"OK\nHostname: {hostname}\nService: {service}\n",
                            content_type="text/plain")

    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", handle)
    return app


def main(argv: Optional[List[str]] = None):
    """Entry point for the HTTP server payload.

    :param argv: list of CLI arguments.
    """
    payloads.setup(argv)
    hostname, service = payloads.identity()
    delay = float(os.environ.get("RESPONSE_DELAY", DEFAULT_DELAY))
    port = payloads.port()
    LOG.info(f"Listening on port {port}")
    web.run_app(make_app(hostname, service, delay), port=port, print=None)
