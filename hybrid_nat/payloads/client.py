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

"""HTTP client run as a Cloud Run job: one GET against TARGET_URL."""

import asyncio
import os
import sys
from typing import List, Mapping, Optional, TextIO

import aiohttp
from oslo_log import log as logging

from hybrid_nat import payloads

LOG = logging.getLogger(__name__)

TIMEOUT = 30


async def fetch(target_url: str, timeout: float = TIMEOUT, out: TextIO = None,
                err: TextIO = None) -> int:
    """Requests the target once and prints the status and the body.

    :return: 0 when any response was received, 1 on a transport failure.
    """
    out = out or sys.stdout
    err = err or sys.stderr
    print(f"Requesting {target_url} ...", file=out)
    try:
        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout)) as session:
            async with session.get(target_url) as response:
                body = await response.text(errors="replace")
                status = response.status
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        print(f"ERROR: {str(e) or repr(e)}", file=err)
        return 1
    print(f"Status: {status}\nBody:\n{body}", file=out)
    return 0


async def async_main(environ: Optional[Mapping[str, str]] = None, out: TextIO = None,
                     err: TextIO = None) -> int:
    """Async entry point for the HTTP client payload.

    :param environ: the environment to read, defaults to os.environ.
    :return: the exit code.
    """
    environ = os.environ if environ is None else environ
    target_url = environ.get("TARGET_URL")
    if not target_url:
        print("TARGET_URL environment variable is required", file=err or sys.stderr)
        return 1
    return await fetch(target_url, out=out, err=err)


def main(argv: Optional[List[str]] = None):
    """Entry point for the HTTP client payload.

    :param argv: list of CLI arguments.
    """
    payloads.setup(argv)
    sys.exit(asyncio.run(async_main()))
