import pytest

from specwise import _settings


@pytest.fixture(autouse=True)
def _reset_settings():
    """Start and finish every test with an empty application-wide store."""
    _settings.restore({})
    yield
    _settings.restore({})
