import pytest

from connectors.tests.fake_repository import FakeRepository


@pytest.fixture
def fake_repo():
    return FakeRepository()
