import pytest
from pytest import mark

from hybrid_nat.conf import CONF
from hybrid_nat.config import DEFAULT_REGION, ConfigurationError, Settings, load_settings
from tests.fakes import FakeCloud


@mark.asyncio
async def test_project_from_configuration() -> None:
    CONF.set_override("project_id", "configured")
    settings = await load_settings(environ={"PROJECT_ID": "from-env"}, executor=FakeCloud())
    assert settings.project_id == "configured"


@mark.asyncio
async def test_project_from_environment() -> None:
    settings = await load_settings(environ={"PROJECT_ID": "from-env"}, executor=FakeCloud())
    assert settings.project_id == "from-env"


@mark.asyncio
async def test_project_from_gcloud() -> None:
    settings = await load_settings(environ={}, executor=FakeCloud(project="ambient"))
    assert settings.project_id == "ambient"


@mark.asyncio
async def test_missing_project() -> None:
    cloud = FakeCloud()
    cloud.ambient_project = None
    with pytest.raises(ConfigurationError):
        await load_settings(environ={}, executor=cloud)


@mark.asyncio
async def test_region_resolution() -> None:
    settings = await load_settings(environ={"PROJECT_ID": "p"})
    assert settings.region == DEFAULT_REGION
    assert settings.zone == f"{DEFAULT_REGION}-a"

    settings = await load_settings(environ={"PROJECT_ID": "p", "REGION": "us-central1"})
    assert settings.region == "us-central1"
    assert settings.zone == "us-central1-a"

    CONF.set_override("region", "europe-west4")
    CONF.set_override("zone", "europe-west4-c")
    settings = await load_settings(environ={"PROJECT_ID": "p", "REGION": "us-central1"})
    assert settings.region == "europe-west4"
    assert settings.zone == "europe-west4-c"


@mark.asyncio
async def test_overrides_win_and_none_is_ignored() -> None:
    CONF.set_override("spokes", 4, group="topology")
    settings = await load_settings(environ={"PROJECT_ID": "p"}, spokes=None)
    assert settings.spokes == 4
    settings = await load_settings(environ={"PROJECT_ID": "p"}, spokes=1)
    assert settings.spokes == 1


def test_defaults() -> None:
    settings = Settings(project_id="p")
    assert settings.spokes == 2
    assert settings.overlap_range == "240.0.0.0/8"
    assert settings.subnet_delete_attempts == 6
    assert settings.subnet_delete_backoff == 10.0
    assert settings.max_concurrency == 5
    assert settings.service_account_email == "cloud-run-nat-poc@p.iam.gserviceaccount.com"
    assert settings.image_url("http-server") == \
        "europe-north2-docker.pkg.dev/p/cloud-run-nat-poc/http-server:latest"


@mark.asyncio
async def test_spokes_out_of_range() -> None:
    with pytest.raises(ConfigurationError):
        await load_settings(environ={"PROJECT_ID": "p"}, spokes=0)
    with pytest.raises(ConfigurationError):
        await load_settings(environ={"PROJECT_ID": "p"}, spokes=100)
