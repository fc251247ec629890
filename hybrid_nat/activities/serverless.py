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

"""Cloud Run service and job activities."""

from typing import Optional

from oslo_log import log as logging

from hybrid_nat.activities.base import cli_step
from hybrid_nat.activities.compute import instance_address
from hybrid_nat.config import Settings
from hybrid_nat.gcloud import CommandResult, ControlPlaneError, Gcloud
from hybrid_nat.reconciler import Step
from hybrid_nat.resources.serverless import RunJob, RunService

LOG = logging.getLogger(__name__)

POOL = "serverless"


def run_service_step(gcloud: Gcloud, service: RunService, settings: Settings) -> Step:
    """Deploys a service with direct VPC egress into its subnet."""
    step = cli_step(gcloud, service, ("run", "services"),
                    scope=(f"--region={service.region}",), pool=POOL)

    async def create() -> None:
        flags = [
            f"--image={service.image_url}",
            f"--region={service.region}",
            f"--network={service.network}",
            f"--subnet={service.subnet}",
            "--vpc-egress=all-traffic",
            f"--ingress={service.ingress}",
            f"--max-instances={service.max_instances}",
            f"--min-instances={service.min_instances}",
            "--cpu-throttling",
            "--allow-unauthenticated",
            "--quiet",
        ]
        if service.env:
            env = ",".join(f"{k}={v}" for k, v in sorted(service.env.items()))
            flags.append(f"--set-env-vars={env}")
        await gcloud.run("run", "deploy", service.name, *flags)

    step.create = create
    return step


def run_job_step(gcloud: Gcloud, job: RunJob, settings: Settings) -> Step:
    """Creates a job whose TARGET_URL points at the target instance.

    The address is discovered when the job is created, so the target
    instance must exist by then.
    """
    step = cli_step(gcloud, job, ("run", "jobs"), scope=(f"--region={job.region}",), pool=POOL)

    async def create() -> Optional[str]:
        flags = [
            f"--image={job.image_url}",
            f"--region={job.region}",
            f"--network={job.network}",
            f"--subnet={job.subnet}",
            "--vpc-egress=all-traffic",
            "--max-retries=0",
            f"--task-timeout={job.task_timeout}",
            "--quiet",
        ]
        target_url = None
        if job.target:
            address = await instance_address(gcloud, job.target, settings.zone)
            if not address:
                raise ControlPlaneError(
                    f"Could not determine the address of {job.target}, "
                    "run the provisioning again once the instance is up."
                )
            target_url = f"http://{address}"
            flags.append(f"--set-env-vars=TARGET_URL={target_url}")
        await gcloud.run("run", "jobs", "create", job.name, *flags)
        return f"TARGET_URL={target_url}" if target_url else None

    step.create = create
    return step


async def execute_job(gcloud: Gcloud, name: str, region: str) -> CommandResult:
    """Executes a job and waits for it to finish."""
    return await gcloud.call("run", "jobs", "execute", name, f"--region={region}", "--wait")
