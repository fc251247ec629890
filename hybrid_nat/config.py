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

"""Configuration definition and parsing."""
import os
from typing import Any, List, Mapping, Optional

from oslo_config import cfg
from oslo_log import log
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

import hybrid_nat.conf
from hybrid_nat import gcloud
from hybrid_nat import version

CONF = hybrid_nat.conf.CONF

LOG = log.getLogger(__name__)

DEFAULT_REGION = "europe-north2"


class ConfigurationError(Exception):
    """Raised when the configuration cannot be resolved."""


def parse_args(argv: List[str], default_config_files: Optional[List[str]] = None):
    """Parse command line arguments to load the configuration.

    :param argv: list of arguments to parse.
    :param default_config_files: Paths to configuration files to use.
    """
    log.register_options(CONF)

    CONF(
        argv[1:],
        project="hybrid_nat",
        version=version.version_string(),
        default_config_files=default_config_files,
    )


class Settings(BaseModel):
    """Everything a workflow needs to know about its target.

    Built once per invocation from the oslo.config options and the
    environment, then passed explicitly to every component.
    """
    model_config = ConfigDict(frozen=True)

    project_id: str
    region: str = DEFAULT_REGION
    zone: Optional[str] = None
    gcloud_binary: str = "gcloud"
    docker_binary: str = "docker"
    service_account_name: str = "cloud-run-nat-poc"

    spokes: int = Field(2, ge=1, le=99)
    overlap_range: str = "240.0.0.0/8"
    hub_compute_range: str = "10.0.0.0/28"
    hub_asn: int = 65000
    iap_source_range: str = "35.235.240.0/20"
    web_responder: bool = False

    repository: str = "cloud-run-nat-poc"
    image_tag: str = "latest"
    build_context: Optional[str] = None
    platform: str = "linux/amd64"

    subnet_delete_attempts: int = 6
    subnet_delete_backoff: float = 10.0
    max_concurrency: int = 5

    request_timeout: int = 30
    load_concurrency: int = 5
    load_requests: int = 20

    cert_days_valid: int = 30

    @model_validator(mode="before")
    @classmethod
    def _default_zone(cls, values: Any) -> Any:
        if isinstance(values, dict) and not values.get("zone"):
            values = dict(values, zone=f"{values.get('region') or DEFAULT_REGION}-a")
        return values

    @property
    def service_account_email(self) -> str:
        return f"{self.service_account_name}@{self.project_id}.iam.gserviceaccount.com"

    @property
    def registry_host(self) -> str:
        return f"{self.region}-docker.pkg.dev"

    def image_url(self, image: str) -> str:
        """Returns the fully qualified url of one of the payload images."""
        return f"{self.registry_host}/{self.project_id}/{self.repository}/{image}:{self.image_tag}"


def _options() -> Mapping[str, Any]:
    return dict(
        project_id=CONF.project_id,
        region=CONF.region,
        zone=CONF.zone,
        gcloud_binary=CONF.gcloud_binary,
        docker_binary=CONF.docker_binary,
        service_account_name=CONF.service_account_name,
        spokes=CONF.topology.spokes,
        overlap_range=CONF.topology.overlap_range,
        hub_compute_range=CONF.topology.hub_compute_range,
        hub_asn=CONF.topology.hub_asn,
        iap_source_range=CONF.topology.iap_source_range,
        web_responder=CONF.topology.web_responder,
        repository=CONF.images.repository,
        image_tag=CONF.images.tag,
        build_context=CONF.images.build_context,
        platform=CONF.images.platform,
        subnet_delete_attempts=CONF.teardown.subnet_delete_attempts,
        subnet_delete_backoff=CONF.teardown.subnet_delete_backoff,
        max_concurrency=CONF.teardown.max_concurrency,
        request_timeout=CONF.exercise.request_timeout,
        load_concurrency=CONF.exercise.concurrency,
        load_requests=CONF.exercise.requests,
        cert_days_valid=CONF.connectivity.cert_days_valid,
    )


async def load_settings(environ: Optional[Mapping[str, str]] = None,
                        executor: Optional[gcloud.Executor] = None,
                        **overrides: Any) -> Settings:
    """Build the Settings for this invocation.

    The project is taken from the configuration, then from the
    PROJECT_ID environment variable and finally from the active gcloud
    configuration. The region falls back to REGION and then to
    DEFAULT_REGION.

    :param environ: the environment to read, defaults to os.environ.
    :param executor: the executor used to query gcloud for the project.
    :param overrides: values taking precedence over the configuration,
                      typically from command line flags. None values are
                      ignored.
    :raises ConfigurationError: when no project can be determined.
    """
    if environ is None:
        environ = os.environ

    values = dict(_options())
    values.update({k: v for k, v in overrides.items() if v is not None})

    if not values.get("region"):
        values["region"] = environ.get("REGION") or DEFAULT_REGION

    if not values.get("project_id"):
        values["project_id"] = environ.get("PROJECT_ID")

    if not values.get("project_id"):
        LOG.debug("No project configured, asking gcloud for the active project")
        values["project_id"] = await gcloud.ambient_project(values["gcloud_binary"], executor)

    if not values.get("project_id"):
        raise ConfigurationError(
            "No project set. Configure project_id, export PROJECT_ID or run: "
            "gcloud config set project <PROJECT_ID>"
        )

    try:
        return Settings(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
