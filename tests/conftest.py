import pytest

from fakes import InMemoryGoals


@pytest.fixture
def goals():
    return InMemoryGoals()
