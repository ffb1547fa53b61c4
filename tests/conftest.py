import pytest

from vkbot.router import Router
from tests.vk_fakes import _FakeApi, make_router


@pytest.fixture
def fake_api() -> _FakeApi:
    return _FakeApi()


@pytest.fixture
def router(fake_api: _FakeApi) -> Router:
    router, _, _ = make_router(fake_api)
    return router
