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

"""Artifact Registry and container image activities."""

import os
from pathlib import Path

from oslo_log import log as logging

from hybrid_nat.activities.base import cli_step
from hybrid_nat.config import Settings
from hybrid_nat.gcloud import Gcloud
from hybrid_nat.reconciler import Step
from hybrid_nat.resources.serverless import Image, Registry

LOG = logging.getLogger(__name__)


def default_build_context() -> str:
    """The source tree containing the containers/ directory."""
    return str(Path(__file__).resolve().parents[2])


def registry_step(gcloud: Gcloud, registry: Registry, settings: Settings) -> Step:
    return cli_step(
        gcloud, registry, ("artifacts", "repositories"),
        scope=(f"--location={registry.location}",),
        create_flags=("--repository-format=docker", f"--description={registry.description}"),
    )


def image_step(gcloud: Gcloud, image: Image, settings: Settings) -> Step:
    """Builds and pushes an image unless the registry already has it.

    Deleting the image removes all of its tags.
    """
    context = settings.build_context or default_build_context()

    async def exists() -> bool:
        return await gcloud.exists("artifacts", "docker", "images", "describe", image.url)

    async def create() -> str:
        result = await gcloud.call("auth", "configure-docker", settings.registry_host, "--quiet")
        if result.returncode != 0:
            LOG.warning(f"Unable to configure docker credentials for {settings.registry_host}: "
                        f"{result.stderr.strip()}")

        LOG.info(f"Building {image.name} from {image.dockerfile}")
        await gcloud.docker(
            "build", f"--platform={settings.platform}",
            "-f", os.path.join(context, image.dockerfile),
            "-t", image.url, context,
        )
        await gcloud.docker("push", image.url)
        return f"pushed to {image.url}"

    async def delete() -> None:
        await gcloud.run("artifacts", "docker", "images", "delete", image.url,
                         "--delete-tags", "--quiet")

    return Step(image.key, exists, create, delete, requires=image.requires())
