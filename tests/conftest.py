"""Root conftest: shared test configuration."""

import os

import pytest

from retailops.config import get_settings

# Keep a developer's local RETAILOPS_* overrides out of the test run
for _key in [k for k in os.environ if k.startswith("RETAILOPS_")]:
    del os.environ[_key]


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
