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

"""Network, subnet and firewall activities."""

import asyncio
from typing import Awaitable, Callable, Optional

from oslo_log import log as logging
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from hybrid_nat.activities.base import cli_step
from hybrid_nat.config import Settings
from hybrid_nat.gcloud import Gcloud, InUseError, NotFoundError
from hybrid_nat.reconciler import Step
from hybrid_nat.resources.network import FirewallRule, Network, Subnet, SubnetPurpose

LOG = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]

PURPOSE_FLAGS = {
    SubnetPurpose.PROXY: ("--purpose=REGIONAL_MANAGED_PROXY", "--role=ACTIVE"),
    SubnetPurpose.PRIVATE_NAT: ("--purpose=PRIVATE_NAT",),
}


def network_step(gcloud: Gcloud, network: Network, settings: Settings) -> Step:
    return cli_step(gcloud, network, ("compute", "networks"),
                    create_flags=("--subnet-mode=custom",))


def firewall_step(gcloud: Gcloud, rule: FirewallRule, settings: Settings) -> Step:
    return cli_step(
        gcloud, rule, ("compute", "firewall-rules"),
        create_flags=(
            f"--network={rule.network}",
            f"--allow={rule.allow}",
            f"--source-ranges={','.join(rule.source_ranges)}",
            "--direction=INGRESS",
        ),
    )


def _log_retry(subnet: Subnet) -> Callable[[RetryCallState], None]:
    def before_sleep(state: RetryCallState) -> None:
        LOG.warning(f"Subnet {subnet.name} is still in use (attempt {state.attempt_number}), "
                    f"retrying in {state.next_action.sleep:.0f}s: {state.outcome.exception()}")
    return before_sleep


def subnet_step(gcloud: Gcloud, subnet: Subnet, settings: Settings,
                sleep: Optional[Sleep] = None) -> Step:
    """Creates a subnet, or deletes it once its addresses are released.

    Serverless workloads release their address reservations some time
    after they are deleted, so deletion is retried with an exponential
    backoff while the subnet is reported in use. Any other failure, and
    the last error once the attempts run out, is raised.

    :param sleep: coroutine function used to wait between attempts.
    """
    sleep = sleep or asyncio.sleep
    scope = (f"--region={subnet.region}",)
    create_flags = [f"--network={subnet.network}", f"--range={subnet.range}"]
    create_flags.extend(PURPOSE_FLAGS.get(subnet.purpose, ()))
    if subnet.private_google_access:
        create_flags.append("--enable-private-ip-google-access")

    step = cli_step(gcloud, subnet, ("compute", "networks", "subnets"), scope=scope,
                    create_flags=create_flags)

    async def delete() -> Optional[str]:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(settings.subnet_delete_attempts),
            wait=wait_exponential(multiplier=settings.subnet_delete_backoff),
            retry=retry_if_exception_type(InUseError),
            before_sleep=_log_retry(subnet),
            sleep=sleep,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    await gcloud.run("compute", "networks", "subnets", "delete", subnet.name,
                                     *scope, "--quiet")
        except NotFoundError:
            return "already released"
        return None

    step.delete = delete
    return step
