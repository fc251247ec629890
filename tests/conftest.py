from typing import List

import pytest

from hybrid_nat.conf import CONF
from hybrid_nat.config import Settings
from hybrid_nat.gcloud import Gcloud
from hybrid_nat import topology as topology_module
from tests.fakes import PROJECT, FakeCloud


class Sleeper:
    """Records the requested waits instead of sleeping."""

    def __init__(self):
        self.waits: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.waits.append(seconds)


@pytest.fixture(autouse=True)
def reset_conf():
    yield
    CONF.reset()


@pytest.fixture
def settings() -> Settings:
    return Settings(project_id=PROJECT, region="europe-north2", spokes=2, build_context="/src")


@pytest.fixture
def topology(settings):
    return topology_module.build(settings)


@pytest.fixture
def cloud() -> FakeCloud:
    return FakeCloud()


@pytest.fixture
def gcloud(cloud) -> Gcloud:
    return Gcloud(PROJECT, executor=cloud)


@pytest.fixture
def sleeper() -> Sleeper:
    return Sleeper()
