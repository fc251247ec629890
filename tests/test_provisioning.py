import os

from pytest import mark

from hybrid_nat.activities.compute import instance_step
from hybrid_nat.objects import Outcome
from hybrid_nat.resources.compute import Instance
from hybrid_nat.topology import HUB_STARTUP_SCRIPT
from hybrid_nat.workflows.bootstrap_iam import bootstrap_iam
from hybrid_nat.workflows.provision_connectivity import provision_connectivity, status_report
from hybrid_nat.workflows.provision_infra import provision_infra
from tests.fakes import PROJECT_NUMBER, FakeCloud


async def provision_all(settings, topology, gcloud):
    reports = [
        await bootstrap_iam(settings, topology, gcloud),
        await provision_infra(settings, topology, gcloud),
        await provision_connectivity(settings, topology, gcloud),
    ]
    for report in reports:
        assert report.ok, report.failures
    return reports


def snapshot(cloud: FakeCloud):
    return repr(sorted(cloud.resources.items(), key=lambda item: repr(item[0]))), \
        {role: set(members) for role, members in cloud.policy.items()}


@mark.asyncio
async def test_full_provisioning(settings, topology, gcloud, cloud: FakeCloud) -> None:
    await provision_all(settings, topology, gcloud)

    assert "run.googleapis.com" in cloud.enabled
    assert cloud.names("compute", "networks") == ["hub", "spoke-1", "spoke-2"]
    assert cloud.names("run", "services") == ["cr-spoke-1", "cr-spoke-2"]
    assert cloud.names("run", "jobs") == ["job-spoke-1", "job-spoke-2"]
    assert cloud.names("compute", "forwarding-rules") == ["ilb-spoke-1", "ilb-spoke-2"]
    assert cloud.names("compute", "routers", "nats", "rules") == ["100", "100"]
    agent = f"serviceAccount:service-{PROJECT_NUMBER}@serverless-robot-prod.iam.gserviceaccount.com"
    assert agent in cloud.policy["roles/compute.networkUser"]
    assert len([r for r, members in cloud.policy.items() if members]) == 10

    hub = cloud.get(("compute", "routers"), "vpn-router-hub")
    assert len(hub["interfaces"]) == 4
    assert len(hub["bgpPeers"]) == 4
    assert hub["bgp"]["advertiseMode"] == "CUSTOM"
    assert [r["range"] for r in hub["bgp"]["advertisedIpRanges"]] == ["10.0.0.0/28"]


@mark.asyncio
async def test_second_run_creates_nothing(settings, topology, gcloud, cloud: FakeCloud) -> None:
    await provision_all(settings, topology, gcloud)
    before = snapshot(cloud)
    cloud.calls.clear()

    reports = await provision_all(settings, topology, gcloud)

    assert cloud.mutations == []
    assert snapshot(cloud) == before
    for report in reports:
        assert {r.outcome for r in report.results} == {Outcome.EXISTS}


@mark.asyncio
async def test_job_targets_the_hub_instance(settings, topology, gcloud, cloud) -> None:
    await provision_all(settings, topology, gcloud)
    job = cloud.get(("run", "jobs"), "job-spoke-1")
    assert job["flags"]["set-env-vars"] == "TARGET_URL=http://10.0.0.2"
    assert job["flags"]["subnet"] == "overlap-spoke-1"
    assert job["flags"]["vpc-egress"] == "all-traffic"
    assert job["flags"]["max-retries"] == "0"


@mark.asyncio
async def test_startup_script_is_passed_as_a_file(settings, topology, gcloud, cloud) -> None:
    await provision_all(settings, topology, gcloud)
    hub = cloud.get(("compute", "instances"), "vm-hub")
    assert hub["metadata"]["items"] == [{"key": "startup-script", "value": HUB_STARTUP_SCRIPT}]
    assert "metadata" not in hub["flags"]

    script = "#!/bin/bash\necho a,b,c > /tmp/out\n"
    instance = Instance(name="vm-commas", zone=settings.zone, network="hub",
                        subnet="compute-hub", startup_script=script)
    result = await instance_step(gcloud, instance, settings).ensure()

    assert result.outcome is Outcome.CREATED
    created = cloud.get(("compute", "instances"), "vm-commas")
    assert created["metadata"]["items"] == [{"key": "startup-script", "value": script}]
    path = created["flags"]["metadata-from-file"].split("=", 1)[1]
    assert not os.path.exists(path)


@mark.asyncio
async def test_images_are_built_and_pushed(settings, topology, gcloud, cloud) -> None:
    await bootstrap_iam(settings, topology, gcloud)
    await provision_infra(settings, topology, gcloud)
    builds = [argv for argv in cloud.calls if argv[:2] == ["docker", "build"]]
    assert len(builds) == 2
    assert builds[0][-1] == "/src"
    assert "/src/containers/http-server/Dockerfile" in builds[0]
    assert "--platform=linux/amd64" in builds[0]
    assert cloud.names("artifacts", "docker", "images") == [
        settings.image_url("http-client"), settings.image_url("http-server"),
    ]


@mark.asyncio
async def test_missing_composite_part_is_recreated(settings, topology, gcloud, cloud) -> None:
    await provision_all(settings, topology, gcloud)
    router = cloud.get(("compute", "routers"), "vpn-router-spoke-2")
    router["bgpPeers"] = [p for p in router["bgpPeers"] if p["name"] != "bgp-hub-if1"]
    backend = cloud.get(("compute", "backend-services"), "bs-spoke-1")
    backend["backends"] = []
    cloud.calls.clear()

    report = await provision_connectivity(settings, topology, gcloud)

    created = [r.name for r in report.results if r.outcome is Outcome.CREATED]
    assert created == ["bgp-peer/vpn-router-spoke-2/bgp-hub-if1", "backend/bs-spoke-1/neg-spoke-1"]
    assert len(cloud.mutations) == 2


@mark.asyncio
async def test_advertisement_drift_is_corrected(settings, topology, gcloud, cloud) -> None:
    await provision_all(settings, topology, gcloud)
    router = cloud.get(("compute", "routers"), "vpn-router-spoke-1")
    router["bgp"]["advertisedIpRanges"].append({"range": "240.0.0.0/8"})

    report = await provision_connectivity(settings, topology, gcloud)

    assert [r.name for r in report.results if r.outcome is Outcome.CREATED] == \
        ["advertisement/vpn-router-spoke-1"]
    assert [r["range"] for r in router["bgp"]["advertisedIpRanges"]] == \
        ["10.1.0.0/28", "172.16.1.0/24"]


@mark.asyncio
async def test_provisioning_aborts_on_error(settings, topology, gcloud, cloud) -> None:
    await bootstrap_iam(settings, topology, gcloud)
    cloud.fail("subnets", "create", "routable-spoke-1", stderr="ERROR: QUOTA_EXCEEDED")

    report = await provision_infra(settings, topology, gcloud)

    assert report.aborted
    assert report.failures[0].name == "subnet/routable-spoke-1"
    assert "QUOTA_EXCEEDED" in report.failures[0].detail
    assert cloud.names("run", "services") == []


@mark.asyncio
async def test_existence_check_errors_abort(settings, topology, gcloud, cloud) -> None:
    cloud.fail("services", "list", stderr="ERROR: PERMISSION_DENIED")
    report = await bootstrap_iam(settings, topology, gcloud)
    assert report.aborted
    assert report.results[0].outcome is Outcome.FAILED
    assert not any(argv for argv in cloud.calls if "create" in argv)


@mark.asyncio
async def test_connectivity_needs_the_infrastructure(settings, topology, gcloud, cloud) -> None:
    await bootstrap_iam(settings, topology, gcloud)
    report = await provision_connectivity(settings, topology, gcloud)
    assert report.aborted
    assert report.failures[0].name == "router/vpn-router-hub"


@mark.asyncio
async def test_status_report(settings, topology, gcloud, cloud) -> None:
    await provision_all(settings, topology, gcloud)
    lines = await status_report(topology, gcloud)
    assert "  vpn-tunnel-hub-to-spoke-1-if0: ESTABLISHED" in lines
    assert "  vpn-router-hub/bgp-spoke-2-if1: UP (1 learned routes)" in lines
    assert any(line.startswith("  ilb-spoke-1: 10.1.0.") for line in lines)


@mark.asyncio
async def test_status_report_before_provisioning(settings, topology, gcloud, cloud) -> None:
    lines = await status_report(topology, gcloud)
    assert "  ilb-spoke-1: unknown" in lines
    assert any("not ready yet" in line for line in lines)
