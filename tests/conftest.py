import pytest

from announcement.conf import reload_settings, settings


@pytest.fixture(autouse=True)
def reset_settings():
    # Fresh settings per test; the host application owns logging setup.
    reload_settings()
    settings.is_logging_setup = True

    yield

    reload_settings()


@pytest.fixture(params=["asyncio", "trio"])
def anyio_backend(request):
    return request.param
