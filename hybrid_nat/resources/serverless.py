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

"""Container registry, image and Cloud Run resources."""

from typing import ClassVar, Dict, List, Optional

from hybrid_nat.resources import Resource, key
from hybrid_nat.resources.compute import Instance
from hybrid_nat.resources.network import Subnet


class Registry(Resource):
    """An Artifact Registry docker repository."""
    kind: ClassVar[str] = "registry"
    location: str
    description: str = ""


class Image(Resource):
    """A container image built from a Dockerfile and pushed to the registry."""
    kind: ClassVar[str] = "image"
    url: str
    registry: str
    dockerfile: str

    def requires(self) -> List[str]:
        return super().requires() + [key(Registry.kind, self.registry)]


class RunService(Resource):
    """A Cloud Run service egressing directly into a subnet."""
    kind: ClassVar[str] = "run-service"
    region: str
    image: str
    image_url: str
    network: str
    subnet: str
    ingress: str = "internal"
    min_instances: int = 0
    max_instances: int = 5
    env: Dict[str, str] = {}

    def requires(self) -> List[str]:
        return super().requires() + [key(Subnet.kind, self.subnet), key(Image.kind, self.image)]


class RunJob(Resource):
    """A Cloud Run job calling the instance named by ``target``."""
    kind: ClassVar[str] = "run-job"
    region: str
    image: str
    image_url: str
    network: str
    subnet: str
    target: Optional[str] = None
    task_timeout: str = "60s"

    def requires(self) -> List[str]:
        deps = super().requires() + [key(Subnet.kind, self.subnet), key(Image.kind, self.image)]
        if self.target:
            deps.append(key(Instance.kind, self.target))
        return deps
