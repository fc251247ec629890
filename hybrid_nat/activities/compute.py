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

"""Compute instance activities."""

import os
import tempfile
from typing import Optional

from oslo_log import log as logging

from hybrid_nat.activities.base import cli_step
from hybrid_nat.config import Settings
from hybrid_nat.gcloud import CommandResult, Gcloud
from hybrid_nat.reconciler import Step
from hybrid_nat.resources.compute import Instance

LOG = logging.getLogger(__name__)


def instance_step(gcloud: Gcloud, instance: Instance, settings: Settings) -> Step:
    """Creates an instance without an external address.

    The startup script is handed over as a file, since the inline
    metadata flag splits its value on commas.
    """
    zone = f"--zone={instance.zone}"
    step = cli_step(gcloud, instance, ("compute", "instances"), scope=(zone,))

    async def create() -> None:
        flags = [
            zone,
            f"--machine-type={instance.machine_type}",
            f"--network-interface=network={instance.network},subnet={instance.subnet},no-address",
        ]
        with tempfile.TemporaryDirectory(prefix="hybrid-nat-") as tmp:
            if instance.startup_script:
                script_path = os.path.join(tmp, "startup-script.sh")
                with open(script_path, "w") as f:
                    f.write(instance.startup_script)
                flags.append(f"--metadata-from-file=startup-script={script_path}")
            await gcloud.run("compute", "instances", "create", instance.name, *flags)

    step.create = create
    return step


async def instance_address(gcloud: Gcloud, name: str, zone: str) -> Optional[str]:
    """Returns the internal address of an instance, or None if it has none yet."""
    instance = await gcloud.describe("compute", "instances", "describe", name, f"--zone={zone}")
    if not instance:
        return None
    interfaces = instance.get("networkInterfaces") or [{}]
    return interfaces[0].get("networkIP")


async def ssh(gcloud: Gcloud, name: str, zone: str, command: str) -> CommandResult:
    """Runs a shell command on an instance through an IAP tunnel.

    The result is returned whatever the exit status; the caller decides
    what a failure means.
    """
    LOG.debug(f"Running on {name}: {command}")
    return await gcloud.call(
        "compute", "ssh", name, f"--zone={zone}", "--tunnel-through-iap",
        f"--command={command}",
    )
