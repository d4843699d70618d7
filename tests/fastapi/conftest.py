from typing import Generator

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from kit_auth._config import AuthConfig
from kit_auth.models.backend import User
from kit_auth.router import AuthCallbackRouter


@pytest.fixture
def captured_cookies() -> list:
    return []


@pytest.fixture
def router(backend, config: AuthConfig, captured_cookies: list) -> AuthCallbackRouter:
    def get_backend(request, cookies):
        captured_cookies.append(cookies)

        return backend

    return AuthCallbackRouter(get_backend, config)


@pytest.fixture
def test_app(router: AuthCallbackRouter) -> FastAPI:
    app = FastAPI()

    app.include_router(router)

    @app.get("/home")
    async def home(user: User = Depends(router.require_user)) -> dict:
        return {"id": user.id}

    return app


@pytest.fixture
def client(test_app: FastAPI) -> Generator[TestClient, None, None]:
    with TestClient(
        test_app, base_url="https://admin.saedgewell.net", follow_redirects=False
    ) as c:
        yield c
