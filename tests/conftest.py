import pytest
from dbmap.structure import clear_plan_cache


@pytest.fixture(autouse=True)
def clear_caches():
    """Clear bind plan cache before and after each test to ensure test isolation."""
    clear_plan_cache()
    yield
    clear_plan_cache()


pytest_plugins = [
    'tests.fixtures.mocks',
    'tests.fixtures.sqlite',
]
