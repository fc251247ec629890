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

"""Internal application load balancer activities."""

import os
import tempfile
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey, generate_private_key
from cryptography.x509.oid import NameOID
from oslo_log import log as logging

from hybrid_nat.activities.base import cli_step
from hybrid_nat.config import Settings
from hybrid_nat.gcloud import Gcloud
from hybrid_nat.reconciler import Step
from hybrid_nat.resources.lb import (
    BackendAttachment,
    BackendService,
    ForwardingRule,
    HttpsProxy,
    NetworkEndpointGroup,
    SslCertificate,
    UrlMap,
)

LOG = logging.getLogger(__name__)

LOAD_BALANCING_SCHEME = "--load-balancing-scheme=INTERNAL_MANAGED"


def gen_rsa_key(key_size: int = 2048) -> RSAPrivateKey:
    return generate_private_key(public_exponent=65537, key_size=key_size)


def generate_certificate(common_name: str, days_valid: int = 30) -> Tuple[bytes, bytes]:
    """Returns a self-signed certificate and its private key, both PEM encoded."""
    key = gen_rsa_key()
    subject = issuer = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.now(tz=timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + timedelta(days=days_valid))
        .add_extension(x509.SubjectAlternativeName([x509.DNSName(common_name)]), critical=False)
        .sign(key, hashes.SHA256())
    )
    key_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return cert.public_bytes(serialization.Encoding.PEM), key_pem


def ssl_certificate_step(gcloud: Gcloud, certificate: SslCertificate, settings: Settings) -> Step:
    """Uploads a freshly generated self-signed certificate.

    The key material only touches the disk in a temporary directory for
    the duration of the upload.
    """
    region = f"--region={certificate.region}"
    step = cli_step(gcloud, certificate, ("compute", "ssl-certificates"), scope=(region,))

    async def create() -> str:
        cert_pem, key_pem = generate_certificate(certificate.common_name, certificate.days_valid)
        with tempfile.TemporaryDirectory(prefix="hybrid-nat-") as tmp:
            cert_path = os.path.join(tmp, "cert.pem")
            key_path = os.path.join(tmp, "key.pem")
            with open(cert_path, "wb") as f:
                f.write(cert_pem)
            with open(os.open(key_path, os.O_WRONLY | os.O_CREAT, 0o600), "wb") as f:
                f.write(key_pem)
            await gcloud.run("compute", "ssl-certificates", "create", certificate.name,
                             f"--certificate={cert_path}", f"--private-key={key_path}", region)
        return f"CN={certificate.common_name}"

    step.create = create
    return step


def neg_step(gcloud: Gcloud, neg: NetworkEndpointGroup, settings: Settings) -> Step:
    return cli_step(gcloud, neg, ("compute", "network-endpoint-groups"),
                    scope=(f"--region={neg.region}",),
                    create_flags=("--network-endpoint-type=serverless",
                                  f"--cloud-run-service={neg.service}"))


def backend_service_step(gcloud: Gcloud, backend: BackendService, settings: Settings) -> Step:
    return cli_step(gcloud, backend, ("compute", "backend-services"),
                    scope=(f"--region={backend.region}",),
                    create_flags=(LOAD_BALANCING_SCHEME, f"--protocol={backend.protocol}"))


def backend_attachment_step(gcloud: Gcloud, attachment: BackendAttachment,
                            settings: Settings) -> Step:
    """Adds a NEG to a backend service, checked separately from the service itself."""
    region = f"--region={attachment.region}"
    neg_flags = (f"--network-endpoint-group={attachment.neg}",
                 f"--network-endpoint-group-region={attachment.region}")

    async def exists() -> bool:
        backend = await gcloud.describe("compute", "backend-services", "describe",
                                        attachment.backend_service, region) or {}
        suffix = f"/networkEndpointGroups/{attachment.neg}"
        return any(b.get("group", "").endswith(suffix) for b in backend.get("backends", []))

    async def create() -> None:
        await gcloud.run("compute", "backend-services", "add-backend",
                         attachment.backend_service, region, *neg_flags)

    async def delete() -> None:
        await gcloud.run("compute", "backend-services", "remove-backend",
                         attachment.backend_service, region, *neg_flags)

    return Step(attachment.key, exists, create, delete, requires=attachment.requires())


def url_map_step(gcloud: Gcloud, url_map: UrlMap, settings: Settings) -> Step:
    return cli_step(gcloud, url_map, ("compute", "url-maps"),
                    scope=(f"--region={url_map.region}",),
                    create_flags=(f"--default-service={url_map.default_service}",))


def https_proxy_step(gcloud: Gcloud, proxy: HttpsProxy, settings: Settings) -> Step:
    return cli_step(gcloud, proxy, ("compute", "target-https-proxies"),
                    scope=(f"--region={proxy.region}",),
                    create_flags=(f"--url-map={proxy.url_map}",
                                  f"--ssl-certificates={proxy.certificate}"))


def forwarding_rule_step(gcloud: Gcloud, rule: ForwardingRule, settings: Settings) -> Step:
    return cli_step(
        gcloud, rule, ("compute", "forwarding-rules"),
        scope=(f"--region={rule.region}",),
        create_flags=(
            LOAD_BALANCING_SCHEME,
            f"--network={rule.network}",
            f"--subnet={rule.subnet}",
            f"--target-https-proxy={rule.proxy}",
            f"--target-https-proxy-region={rule.region}",
            f"--ports={rule.ports}",
        ),
    )


async def frontend_address(gcloud: Gcloud, name: str, region: str) -> Optional[str]:
    """Returns the address of a forwarding rule, or None when it does not exist."""
    rule = await gcloud.describe("compute", "forwarding-rules", "describe", name,
                                 f"--region={region}")
    return (rule or {}).get("IPAddress")
