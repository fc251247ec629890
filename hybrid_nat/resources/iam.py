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

"""Identity and API resources."""

from typing import ClassVar, List, Optional

from hybrid_nat.resources import Resource, key


class ApiSet(Resource):
    """The set of provider APIs that must be enabled."""
    kind: ClassVar[str] = "apis"
    services: List[str]


class ServiceAccount(Resource):
    """The service account the provisioning runs as."""
    kind: ClassVar[str] = "service-account"
    email: str
    display_name: str
    description: str = ""

    def requires(self) -> List[str]:
        return super().requires() + [key(ApiSet.kind, "required")]


class RoleBinding(Resource):
    """A project level role granted to a member.

    When ``service_agent`` is set the member is the Cloud Run service
    agent, which is only known once the project number is resolved.
    """
    kind: ClassVar[str] = "iam-binding"
    role: str
    member: Optional[str] = None
    service_account: Optional[str] = None
    service_agent: bool = False

    def requires(self) -> List[str]:
        deps = super().requires()
        if self.service_account:
            deps.append(key(ServiceAccount.kind, self.service_account))
        return deps
