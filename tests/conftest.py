import pytest

from tests.fakes import FakeCacheStore, FakeUpstream


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def store() -> FakeCacheStore:
    return FakeCacheStore()
