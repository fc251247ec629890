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

"""Internal application load balancer resources."""

from typing import ClassVar, List

from hybrid_nat.resources import Resource, key
from hybrid_nat.resources.network import Subnet
from hybrid_nat.resources.serverless import RunService


class SslCertificate(Resource):
    """A regional self-signed certificate generated at creation time."""
    kind: ClassVar[str] = "ssl-certificate"
    region: str
    common_name: str
    days_valid: int = 30


class NetworkEndpointGroup(Resource):
    """A serverless NEG pointing at a Cloud Run service."""
    kind: ClassVar[str] = "neg"
    region: str
    service: str

    def requires(self) -> List[str]:
        return super().requires() + [key(RunService.kind, self.service)]


class BackendService(Resource):
    """An INTERNAL_MANAGED backend service."""
    kind: ClassVar[str] = "backend-service"
    region: str
    protocol: str = "HTTP"


class BackendAttachment(Resource):
    """A NEG added as backend. Named ``<backend service>/<neg>``."""
    kind: ClassVar[str] = "backend"
    region: str
    backend_service: str
    neg: str

    def requires(self) -> List[str]:
        return super().requires() + [
            key(BackendService.kind, self.backend_service),
            key(NetworkEndpointGroup.kind, self.neg),
        ]


class UrlMap(Resource):
    """A URL map sending everything to one backend service."""
    kind: ClassVar[str] = "url-map"
    region: str
    default_service: str

    def requires(self) -> List[str]:
        return super().requires() + [key(BackendService.kind, self.default_service)]


class HttpsProxy(Resource):
    """A target HTTPS proxy terminating TLS."""
    kind: ClassVar[str] = "https-proxy"
    region: str
    url_map: str
    certificate: str

    def requires(self) -> List[str]:
        return super().requires() + [
            key(UrlMap.kind, self.url_map),
            key(SslCertificate.kind, self.certificate),
        ]


class ForwardingRule(Resource):
    """The front end address of the load balancer."""
    kind: ClassVar[str] = "forwarding-rule"
    region: str
    network: str
    subnet: str
    proxy: str
    ports: str = "443"

    def requires(self) -> List[str]:
        return super().requires() + [
            key(HttpsProxy.kind, self.proxy),
            key(Subnet.kind, self.subnet),
        ]
