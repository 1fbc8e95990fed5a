import pytest

from apps.backend.services.admin_settings import invalidate_settings_cache


@pytest.fixture(autouse=True)
def _fresh_settings_cache():
    invalidate_settings_cache()
    yield
    invalidate_settings_cache()
