from typing import List

import pytest
from pytest import mark

from hybrid_nat.gcloud import (
    CommandResult,
    Gcloud,
    GcloudError,
    InUseError,
    NotFoundError,
    ambient_project,
    raise_for_result,
)


class Recorder:
    def __init__(self, returncode: int = 0, stdout: str = "", stderr: str = ""):
        self.argvs: List[List[str]] = []
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr

    async def __call__(self, argv):
        self.argvs.append(list(argv))
        return CommandResult(argv=list(argv), returncode=self.returncode,
                             stdout=self.stdout, stderr=self.stderr)


def result(returncode: int, stderr: str = "") -> CommandResult:
    return CommandResult(argv=["gcloud", "compute", "networks", "describe", "hub"],
                         returncode=returncode, stderr=stderr)


def test_success_is_returned() -> None:
    ok = result(0)
    assert raise_for_result(ok) is ok


@pytest.mark.parametrize("stderr", [
    "ERROR: (gcloud.compute.networks.describe) Could not fetch resource:\n"
    " - The resource 'projects/p/global/networks/hub' was not found",
    "ERROR: (gcloud.run.services.describe) Cannot find service [cr-spoke-1]: NOT_FOUND",
    "ERROR: (gcloud.iam.service-accounts.describe) NOT_FOUND: Unknown service account",
])
def test_not_found_is_classified(stderr: str) -> None:
    with pytest.raises(NotFoundError):
        raise_for_result(result(1, stderr))


def test_other_failures_are_errors() -> None:
    with pytest.raises(GcloudError) as e:
        raise_for_result(result(1, "ERROR: (gcloud) PERMISSION_DENIED: Required 'compute.networks.get'"))
    assert not isinstance(e.value, NotFoundError)
    assert "PERMISSION_DENIED" in str(e.value)
    assert e.value.result.returncode == 1


def test_in_use_is_classified() -> None:
    stderr = ("ERROR: (gcloud.compute.networks.subnets.delete) Could not fetch resource:\n"
              " - The subnetwork resource 'projects/p/regions/r/subnetworks/overlap-spoke-1' "
              "is already being used by 'projects/p/regions/r/addresses/serverless-ipv4-1'")
    with pytest.raises(InUseError):
        raise_for_result(result(1, stderr))
    with pytest.raises(GcloudError) as e:
        raise_for_result(result(1, "ERROR: (gcloud) PERMISSION_DENIED: compute.subnetworks.delete"))
    assert not isinstance(e.value, InUseError)


@mark.asyncio
async def test_run_scopes_commands_to_the_project() -> None:
    recorder = Recorder()
    gcloud = Gcloud("my-project", binary="/opt/gcloud", executor=recorder)
    await gcloud.run("compute", "networks", "list")
    assert recorder.argvs == [["/opt/gcloud", "compute", "networks", "list", "--project=my-project"]]


@mark.asyncio
async def test_describe_returns_none_when_absent() -> None:
    gcloud = Gcloud("p", executor=Recorder(1, stderr="The resource 'hub' was not found"))
    assert await gcloud.describe("compute", "networks", "describe", "hub") is None
    assert not await gcloud.exists("compute", "networks", "describe", "hub")


@mark.asyncio
async def test_describe_propagates_other_failures() -> None:
    gcloud = Gcloud("p", executor=Recorder(1, stderr="PERMISSION_DENIED"))
    with pytest.raises(GcloudError):
        await gcloud.describe("compute", "networks", "describe", "hub")


@mark.asyncio
async def test_json_decodes_output() -> None:
    recorder = Recorder(stdout='{"name": "hub"}')
    gcloud = Gcloud("p", executor=recorder)
    assert await gcloud.json("compute", "networks", "describe", "hub") == {"name": "hub"}
    assert "--format=json" in recorder.argvs[0]


@mark.asyncio
async def test_call_does_not_raise() -> None:
    gcloud = Gcloud("p", executor=Recorder(1, stderr="boom"))
    outcome = await gcloud.call("run", "jobs", "execute", "job-spoke-1")
    assert outcome.returncode == 1


@mark.asyncio
async def test_docker_is_not_project_scoped() -> None:
    recorder = Recorder()
    gcloud = Gcloud("p", docker_binary="podman", executor=recorder)
    await gcloud.docker("push", "image")
    assert recorder.argvs == [["podman", "push", "image"]]


@mark.asyncio
async def test_ambient_project() -> None:
    assert await ambient_project(executor=Recorder(stdout="from-gcloud\n")) == "from-gcloud"
    assert await ambient_project(executor=Recorder(stdout="\n")) is None
    assert await ambient_project(executor=Recorder(1, stderr="no config")) is None
