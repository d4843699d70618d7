import warnings
from typing import Any

import pytest

from kit_auth._callback import AuthCallbackService
from kit_auth._config import AuthConfig, CookieOptions
from kit_auth.exceptions import SessionContextWarning
from kit_auth.models.backend import (
    AssuranceLevelResult,
    AssuranceLevels,
    BackendError,
    ExchangeResult,
    Session,
    SessionData,
    User,
    UserData,
    UserResult,
)

ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "https://saedgewell.net",
    "https://admin.saedgewell.net",
    "not a url",
]


class MemoryCookieStore:
    """In-memory cookie store for testing.

    Implements the CookieStore protocol via duck typing and records every
    call so tests can check what was written or deleted.
    """

    def __init__(self, cookies: dict[str, str] | None = None):
        self.data: dict[str, str] = dict(cookies or {})
        self.deleted: list[str] = []
        self.options: dict[str, CookieOptions] = {}

    def get(self, name: str) -> str | None:
        return self.data.get(name)

    def set(self, name: str, value: str, **options: Any):
        self.data[name] = value
        self.options[name] = options  # type: ignore[assignment]

    def delete(self, name: str, **options: Any):
        self.data.pop(name, None)
        self.deleted.append(name)


class FakeMFA:
    def __init__(self, backend: "FakeIdentityBackend"):
        self.backend = backend
        self.calls = 0

    async def get_authenticator_assurance_level(self) -> AssuranceLevelResult:
        self.calls += 1
        backend = self.backend

        if backend.mfa_exception is not None:
            raise backend.mfa_exception

        if not backend.suppress_session_warning:
            warnings.warn("no request context", SessionContextWarning)

        if backend.mfa_error is not None:
            return AssuranceLevelResult(error=backend.mfa_error)

        return AssuranceLevelResult(
            data=AssuranceLevels(
                current_level=backend.current_level, next_level=backend.next_level
            )
        )


class FakeIdentityBackend:
    """Scriptable identity backend for testing."""

    def __init__(self):
        self.session: Session | None = Session(
            access_token="access-token", refresh_token="refresh-token"
        )
        self.exchange_error: BackendError | None = None
        self.exchange_exception: Exception | None = None
        self.verify_error: BackendError | None = None
        self.verify_exception: Exception | None = None
        self.user: User | None = User(id="user-1", email="test@example.com")
        self.user_error: BackendError | None = None
        self.user_exception: Exception | None = None
        self.current_level: str | None = "aal1"
        self.next_level: str | None = "aal1"
        self.mfa_error: BackendError | None = None
        self.mfa_exception: Exception | None = None
        self.suppress_session_warning = False

        self.exchanged_codes: list[str] = []
        self.verified: list[dict[str, str]] = []
        self._mfa = FakeMFA(self)

    @property
    def mfa(self) -> FakeMFA:
        return self._mfa

    async def exchange_code_for_session(self, code: str) -> ExchangeResult:
        self.exchanged_codes.append(code)

        if self.exchange_exception is not None:
            raise self.exchange_exception

        if self.exchange_error is not None:
            return ExchangeResult(error=self.exchange_error)

        return ExchangeResult(data=SessionData(session=self.session, user=self.user))

    async def verify_otp(self, *, type: str, token_hash: str) -> ExchangeResult:
        self.verified.append({"type": type, "token_hash": token_hash})

        if self.verify_exception is not None:
            raise self.verify_exception

        if self.verify_error is not None:
            return ExchangeResult(error=self.verify_error)

        return ExchangeResult(data=SessionData(session=self.session, user=self.user))

    async def get_user(self) -> UserResult:
        if self.user_exception is not None:
            raise self.user_exception

        if self.user_error is not None:
            return UserResult(error=self.user_error)

        return UserResult(data=UserData(user=self.user))


@pytest.fixture
def config() -> AuthConfig:
    return AuthConfig(
        allowed_redirect_origins=list(ALLOWED_ORIGINS),
        dev_domain_suffixes=["saedgewell.test"],
        sign_in_path="/auth/sign-in",
        verify_mfa_path="/auth/verify",
        default_redirect_path="/home",
    )


@pytest.fixture
def backend() -> FakeIdentityBackend:
    return FakeIdentityBackend()


@pytest.fixture
def make_cookies():
    def _make_cookies(**cookies: str) -> MemoryCookieStore:
        return MemoryCookieStore(cookies)

    return _make_cookies


@pytest.fixture
def cookies(config: AuthConfig) -> MemoryCookieStore:
    names = config.pkce_cookies

    return MemoryCookieStore(
        {
            names.state: "abc",
            names.code_verifier: "v1",
            names.redirect_to: "https://admin.saedgewell.net/works",
        }
    )


@pytest.fixture
def service(backend: FakeIdentityBackend, config: AuthConfig) -> AuthCallbackService:
    return AuthCallbackService(backend, config)
