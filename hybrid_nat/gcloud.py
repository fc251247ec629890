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

"""Invoking gcloud and docker as asynchronous subprocesses."""

import asyncio
import json
import re
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from oslo_log import log as logging

from hybrid_nat.objects import Object

LOG = logging.getLogger(__name__)

# gcloud reports a missing resource in several shapes depending on the API.
NOT_FOUND_PATTERN = re.compile(
    r"NOT_FOUND|not found|was not found|could not be found|does not exist|\b404\b",
    re.IGNORECASE,
)

# A resource still referenced by another one, e.g. a subnet holding serverless addresses.
IN_USE_PATTERN = re.compile(r"is already being used by|resourceInUseByAnotherResource")


class CommandResult(Object):
    """The outcome of one external command."""
    argv: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def command(self) -> str:
        return " ".join(self.argv)


Executor = Callable[[Sequence[str]], Awaitable[CommandResult]]


class ControlPlaneError(Exception):
    """A resource could not be reconciled against the control plane."""


class GcloudError(ControlPlaneError):
    """A command against the control plane failed."""

    def __init__(self, result: CommandResult):
        self.result = result
        message = result.stderr.strip() or result.stdout.strip() or "no output"
        super().__init__(f"'{result.command}' exited with {result.returncode}: {message}")


class NotFoundError(GcloudError):
    """The control plane reported that the resource does not exist."""


class InUseError(GcloudError):
    """The resource cannot be deleted while another resource still uses it."""


async def subprocess_executor(argv: Sequence[str]) -> CommandResult:
    """Runs the command and collects its output.

    :param argv: the command and its arguments.
    :return: the CommandResult for the finished process.
    """
    LOG.debug(f"Issuing command: {' '.join(argv)}")
    process = await asyncio.create_subprocess_exec(
        *argv, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE
    )
    stdout, stderr = await process.communicate()
    result = CommandResult(
        argv=list(argv),
        returncode=process.returncode,
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
    )
    if result.returncode != 0:
        LOG.debug(f"{result.command} failed. stdout = {result.stdout}, stderr = {result.stderr}")
    return result


def raise_for_result(result: CommandResult) -> CommandResult:
    """Raises the matching GcloudError when the command failed."""
    if result.returncode == 0:
        return result
    if IN_USE_PATTERN.search(result.stderr):
        raise InUseError(result)
    if NOT_FOUND_PATTERN.search(result.stderr):
        raise NotFoundError(result)
    raise GcloudError(result)


async def ambient_project(binary: str = "gcloud",
                          executor: Optional[Executor] = None) -> Optional[str]:
    """Returns the project of the active gcloud configuration, if any."""
    executor = executor or subprocess_executor
    result = await executor([binary, "config", "get-value", "project"])
    if result.returncode != 0:
        LOG.warning(f"Unable to read the active gcloud project: {result.stderr.strip()}")
        return None
    return result.stdout.strip() or None


class Gcloud:
    """A thin client issuing gcloud commands for a single project.

    Every command is scoped to the project with ``--project``. Failures
    raise GcloudError, or NotFoundError when the control plane reports
    the resource as missing.
    """

    def __init__(self, project: str, binary: str = "gcloud", docker_binary: str = "docker",
                 executor: Optional[Executor] = None):
        self.project = project
        self.binary = binary
        self.docker_binary = docker_binary
        self.executor = executor or subprocess_executor

    async def run(self, *args: str, project: bool = True) -> CommandResult:
        """Runs a gcloud command and raises on failure.

        :param args: the gcloud arguments, e.g. ("compute", "networks", "list").
        :param project: append the --project flag.
        """
        argv = [self.binary, *args]
        if project:
            argv.append(f"--project={self.project}")
        return raise_for_result(await self.executor(argv))

    async def call(self, *args: str) -> CommandResult:
        """Runs a gcloud command and returns the result without raising."""
        return await self.executor([self.binary, *args, f"--project={self.project}"])

    async def json(self, *args: str) -> Any:
        """Runs a gcloud command and decodes its JSON output."""
        result = await self.run(*args, "--format=json")
        if not result.stdout.strip():
            return None
        return json.loads(result.stdout)

    async def describe(self, *args: str) -> Optional[Any]:
        """Describes a resource, returning None when it does not exist.

        Any failure other than a missing resource propagates.

        :param args: the describe command without the verb's output format,
                     e.g. ("compute", "networks", "describe", "hub").
        """
        try:
            return await self.json(*args)
        except NotFoundError:
            return None

    async def exists(self, *args: str) -> bool:
        return await self.describe(*args) is not None

    async def docker(self, *args: str) -> CommandResult:
        """Runs a docker command and raises on failure."""
        return raise_for_result(await self.executor([self.docker_binary, *args]))
