import pytest

from tests._fakes import FakeStore, RecordingSleep


@pytest.fixture
def sleeper() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()
