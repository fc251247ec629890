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

"""Building blocks shared by the activities."""

from typing import Optional, Sequence

from hybrid_nat.gcloud import Gcloud
from hybrid_nat.reconciler import Step
from hybrid_nat.resources import Resource


def cli_step(gcloud: Gcloud, resource: Resource, group: Sequence[str],
             scope: Sequence[str] = (), create_flags: Sequence[str] = (),
             ident: Optional[str] = None, **kwargs) -> Step:
    """Returns a step for a resource following the describe/create/delete idiom.

    :param gcloud: the gcloud client.
    :param resource: the resource the step reconciles.
    :param group: the command group, e.g. ("compute", "networks").
    :param scope: flags locating the resource, e.g. ("--region=europe-north2",).
    :param create_flags: additional flags for the create command.
    :param ident: the identifier passed to gcloud, defaults to the name.
    :param kwargs: passed on to Step.
    """
    ident = ident or resource.name

    async def exists() -> bool:
        return await gcloud.exists(*group, "describe", ident, *scope)

    async def create() -> None:
        await gcloud.run(*group, "create", ident, *scope, *create_flags)

    async def delete() -> None:
        await gcloud.run(*group, "delete", ident, *scope, "--quiet")

    return Step(resource.key, exists, create, delete, requires=resource.requires(), **kwargs)
