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

"""Identity and API activities."""

from typing import Set

from oslo_log import log as logging

from hybrid_nat.activities.base import cli_step
from hybrid_nat.config import Settings
from hybrid_nat.gcloud import Gcloud
from hybrid_nat.reconciler import Step
from hybrid_nat.resources.iam import ApiSet, RoleBinding, ServiceAccount

LOG = logging.getLogger(__name__)


async def enabled_services(gcloud: Gcloud) -> Set[str]:
    """Returns the names of the APIs enabled in the project."""
    enabled = set()
    for service in await gcloud.json("services", "list", "--enabled") or []:
        name = service.get("config", {}).get("name") or service.get("name", "")
        enabled.add(name.rsplit("/", 1)[-1])
    return enabled


def apis_step(gcloud: Gcloud, apis: ApiSet, settings: Settings) -> Step:
    """Enables the missing APIs. APIs are left enabled on decommission."""

    async def exists() -> bool:
        return not set(apis.services) - await enabled_services(gcloud)

    async def create() -> str:
        missing = sorted(set(apis.services) - await enabled_services(gcloud))
        await gcloud.run("services", "enable", *missing)
        return f"enabled {', '.join(missing)}"

    return Step(apis.key, exists, create, requires=apis.requires())


def service_account_step(gcloud: Gcloud, account: ServiceAccount, settings: Settings) -> Step:
    step = cli_step(gcloud, account, ("iam", "service-accounts"), ident=account.email)

    async def create() -> None:
        await gcloud.run(
            "iam", "service-accounts", "create", account.name,
            f"--display-name={account.display_name}",
            f"--description={account.description}",
        )

    step.create = create
    return step


async def service_agent_member(gcloud: Gcloud) -> str:
    """Returns the member string of the Cloud Run service agent."""
    project = await gcloud.json("projects", "describe", gcloud.project)
    number = project["projectNumber"]
    return f"serviceAccount:service-{number}@serverless-robot-prod.iam.gserviceaccount.com"


async def role_members(gcloud: Gcloud, role: str) -> Set[str]:
    """Returns the members bound to a role in the project IAM policy."""
    policy = await gcloud.json("projects", "get-iam-policy", gcloud.project) or {}
    for binding in policy.get("bindings", []):
        if binding.get("role") == role and not binding.get("condition"):
            return set(binding.get("members", []))
    return set()


def role_binding_step(gcloud: Gcloud, binding: RoleBinding, settings: Settings) -> Step:
    """Binds a role to a member. Unbinding is best effort."""

    async def member() -> str:
        if binding.service_agent:
            return await service_agent_member(gcloud)
        return binding.member

    async def exists() -> bool:
        return await member() in await role_members(gcloud, binding.role)

    async def create() -> None:
        await gcloud.run(
            "projects", "add-iam-policy-binding", gcloud.project,
            f"--member={await member()}", f"--role={binding.role}",
            "--condition=None", "--quiet",
        )

    async def delete() -> None:
        await gcloud.run(
            "projects", "remove-iam-policy-binding", gcloud.project,
            f"--member={await member()}", f"--role={binding.role}", "--quiet",
        )

    return Step(binding.key, exists, create, delete, requires=binding.requires(),
                best_effort=True)
