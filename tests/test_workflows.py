import logging

import pytest
from pytest import mark

from hybrid_nat.workflows import bootstrap_iam, decommission, exercise, provision_connectivity
from hybrid_nat.workflows import provision_infra
from hybrid_nat.conf import CONF
from tests.fakes import PROJECT, FakeCloud


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    yield
    root.handlers[:] = handlers


@pytest.fixture
def project(monkeypatch):
    monkeypatch.setenv("PROJECT_ID", PROJECT)
    monkeypatch.delenv("REGION", raising=False)


async def run(module, cloud: FakeCloud, *args: str) -> int:
    # every entry point parses the command line once per process
    CONF.reset()
    return await module.async_main(["hybrid-nat", *args], executor=cloud)


@mark.asyncio
async def test_full_lifecycle(project, cloud: FakeCloud, capsys) -> None:
    assert await run(bootstrap_iam, cloud, "--spokes", "1") == 0
    out = capsys.readouterr().out
    assert "iam complete: created=" in out
    assert "auth/impersonate_service_account cloud-run-nat-poc@test-project" in out

    assert await run(provision_infra, cloud, "--spokes", "1") == 0
    assert cloud.names("run", "services") == ["cr-spoke-1"]

    assert await run(provision_connectivity, cloud, "--spokes", "1") == 0
    out = capsys.readouterr().out
    assert "Wait about 60 seconds for BGP to converge" in out
    assert "  ilb-spoke-1: 10.1.0." in out

    assert await run(exercise, cloud, "--spokes", "1") == 0
    assert "2/2 checks passed" in capsys.readouterr().out

    assert await run(decommission, cloud, "--spokes", "1") == 0
    assert cloud.resources == {}


@mark.asyncio
async def test_provisioning_failure_exit_code(project, cloud: FakeCloud) -> None:
    assert await run(bootstrap_iam, cloud) == 0
    cloud.fail("networks", "create", stderr="ERROR: QUOTA_EXCEEDED")
    assert await run(provision_infra, cloud) == 1


@mark.asyncio
async def test_decommission_exit_code_ignores_soft_failures(project, cloud, capsys) -> None:
    assert await run(bootstrap_iam, cloud) == 0
    cloud.fail("service-accounts", "delete", stderr="ERROR: PERMISSION_DENIED")
    assert await run(decommission, cloud) == 0
    assert "could not be deleted" in capsys.readouterr().out


@mark.asyncio
async def test_missing_project(monkeypatch, cloud: FakeCloud) -> None:
    monkeypatch.delenv("PROJECT_ID", raising=False)
    cloud.ambient_project = None
    assert await run(bootstrap_iam, cloud) == 1
    assert cloud.mutations == []


@mark.asyncio
async def test_unknown_spoke(project, cloud: FakeCloud) -> None:
    assert await run(exercise, cloud, "--spoke", "spoke-7") == 1


@mark.asyncio
async def test_load_mode_flags(project, cloud: FakeCloud, capsys) -> None:
    assert await run(bootstrap_iam, cloud, "--spokes", "1") == 0
    assert await run(provision_infra, cloud, "--spokes", "1") == 0
    assert await run(provision_connectivity, cloud, "--spokes", "1") == 0
    capsys.readouterr()

    code = await run(exercise, cloud, "--spokes", "1", "--spoke", "1", "--load",
                     "--requests", "9", "--concurrency", "3")

    assert code == 0
    assert "ilb-spoke-1: 3/3 ok (200=3)" in capsys.readouterr().out
    assert any(a.startswith("--command=seq 9 | xargs -P 3 ") for argv in cloud.calls for a in argv)
