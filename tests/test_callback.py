from urllib.parse import parse_qs, urlsplit

import pytest

from kit_auth._callback import (
    AuthCallbackService,
    create_auth_callback_service,
    handle_auth_callback,
)
from kit_auth._config import AuthConfig
from kit_auth._context import RequestContext
from kit_auth.models.backend import BackendError
from kit_auth.models.callback_outcome import CallbackFailure, CallbackSuccess, ErrorCode

pytestmark = pytest.mark.asyncio

CALLBACK_URL = "http://localhost:3000/auth/callback"


def make_request(query: str = "", **headers: str) -> RequestContext:
    return RequestContext.from_url(
        f"{CALLBACK_URL}?{query}" if query else CALLBACK_URL,
        headers={"host": "admin.saedgewell.net", **headers},
    )


def error_query(outcome: CallbackFailure) -> dict[str, list[str]]:
    return parse_qs(urlsplit(outcome.next_path).query)


class TestHandleCallback:
    async def test_pkce_redirect(self, service: AuthCallbackService, cookies, config):
        outcome = await service.handle_callback(
            make_request("state=abc&code=xyz"), cookies
        )

        assert outcome == CallbackSuccess(
            next_path="https://admin.saedgewell.net/works"
        )

    async def test_pkce_state_mismatch(
        self, service: AuthCallbackService, make_cookies, config: AuthConfig
    ):
        names = config.pkce_cookies
        cookies = make_cookies(**{names.state: "def", names.code_verifier: "v1"})

        outcome = await service.handle_callback(
            make_request("state=abc&code=xyz"), cookies
        )

        assert isinstance(outcome, CallbackFailure)
        assert outcome.error_code == ErrorCode.STATE_MISMATCH
        assert cookies.get(names.state) is None
        assert cookies.get(names.code_verifier) is None

    async def test_token_hash(
        self, service: AuthCallbackService, make_cookies, backend
    ):
        outcome = await service.handle_callback(
            make_request("token_hash=t1&type=email&next=/dashboard"), make_cookies()
        )

        assert outcome == CallbackSuccess(next_path="/dashboard")
        assert backend.verified == [{"type": "email", "token_hash": "t1"}]

    async def test_code_exchange(
        self, service: AuthCallbackService, make_cookies, backend
    ):
        outcome = await service.handle_callback(
            make_request("code=xyz&next=/works"), make_cookies()
        )

        assert outcome == CallbackSuccess(next_path="/works")
        assert backend.exchanged_codes == ["xyz"]

    async def test_code_exchange_rejected(
        self, service: AuthCallbackService, make_cookies, backend
    ):
        backend.exchange_error = BackendError(
            message="invalid request: both auth code and code verifier should be non-empty",
            code="validation_failed",
        )

        outcome = await service.handle_callback(
            make_request("code=xyz"), make_cookies()
        )

        assert isinstance(outcome, CallbackFailure)
        assert outcome.error_code == ErrorCode.EXCHANGE_ERROR
        # mentions the verifier, so the user gets the "other browser" hint
        assert "different browser" in outcome.message
        assert error_query(outcome)["code"] == ["validation_failed"]

    async def test_provider_error(self, service: AuthCallbackService, make_cookies):
        outcome = await service.handle_callback(
            make_request(
                "error=access_denied&error_description=User+denied+access&state=abc"
            ),
            make_cookies(),
        )

        assert isinstance(outcome, CallbackFailure)
        assert outcome.error_code == ErrorCode.OAUTH_ERROR
        assert outcome.message == "User denied access"
        assert error_query(outcome)["error"] == ["User denied access"]
        assert error_query(outcome)["code"] == ["access_denied"]

    async def test_empty_request(self, service: AuthCallbackService, make_cookies):
        outcome = await service.handle_callback(make_request(), make_cookies())

        assert isinstance(outcome, CallbackFailure)
        assert outcome.error_code == ErrorCode.UNKNOWN_ERROR
        assert urlsplit(outcome.next_path).path == "/auth/callback/error"

    async def test_token_hash_without_type(
        self, service: AuthCallbackService, make_cookies, backend
    ):
        outcome = await service.handle_callback(
            make_request("token_hash=t1"), make_cookies()
        )

        assert isinstance(outcome, CallbackFailure)
        assert outcome.error_code == ErrorCode.UNKNOWN_ERROR
        assert backend.verified == []

    @pytest.mark.parametrize(
        "query",
        [
            "state=abc&code=xyz",
            "code=xyz",
            "token_hash=t1&type=email",
            "error=server_error",
            "",
        ],
    )
    async def test_always_clears_pkce_cookies(
        self, service: AuthCallbackService, cookies, config: AuthConfig, query: str
    ):
        await service.handle_callback(make_request(query), cookies)

        names = config.pkce_cookies
        assert cookies.get(names.state) is None
        assert cookies.get(names.code_verifier) is None
        assert sorted(cookies.deleted) == sorted([names.state, names.code_verifier])

    async def test_unexpected_errors_do_not_escape(
        self, service: AuthCallbackService, make_cookies
    ):
        class BrokenCookies:
            deleted: list[str] = []

            def get(self, name: str) -> str | None:
                raise RuntimeError("cookie jar exploded")

            def set(self, name: str, value: str, **options):
                pass

            def delete(self, name: str, **options):
                self.deleted.append(name)

        outcome = await service.handle_callback(
            make_request("state=abc&code=xyz"), BrokenCookies()
        )

        assert isinstance(outcome, CallbackFailure)
        assert outcome.error_code == ErrorCode.UNKNOWN_ERROR
        assert "exploded" not in outcome.next_path

    @pytest.mark.parametrize(
        ("query", "outcome_type"),
        [
            ("state=abc&code=xyz", CallbackSuccess),
            ("code=xyz", CallbackSuccess),
            ("token_hash=t1&type=email", CallbackSuccess),
            ("", CallbackFailure),
        ],
    )
    async def test_failing_cookie_deletion_keeps_outcome(
        self,
        service: AuthCallbackService,
        config: AuthConfig,
        query: str,
        outcome_type: type,
    ):
        names = config.pkce_cookies

        class UndeletableCookies:
            def __init__(self):
                self.data = {
                    names.state: "abc",
                    names.code_verifier: "v1",
                    names.redirect_to: "https://admin.saedgewell.net/works",
                }

            def get(self, name: str) -> str | None:
                return self.data.get(name)

            def set(self, name: str, value: str, **options):
                self.data[name] = value

            def delete(self, name: str, **options):
                raise RuntimeError("response already sent")

        outcome = await service.handle_callback(
            make_request(query), UndeletableCookies()
        )

        assert isinstance(outcome, outcome_type)

    async def test_failing_cookie_deletion_in_oauth_callback(
        self, service: AuthCallbackService
    ):
        class UndeletableCookies:
            def get(self, name: str) -> str | None:
                return None

            def set(self, name: str, value: str, **options):
                pass

            def delete(self, name: str, **options):
                raise RuntimeError("response already sent")

        outcome = await service.oauth_callback(UndeletableCookies(), "abc", "xyz")

        assert isinstance(outcome, CallbackFailure)
        assert outcome.error_code == ErrorCode.STATE_MISMATCH

    async def test_localized_messages(self, backend, make_cookies):
        service = AuthCallbackService(backend, AuthConfig(locale="ja"))

        outcome = await service.handle_callback(make_request(), make_cookies())

        assert isinstance(outcome, CallbackFailure)
        assert outcome.message == "認証処理中に予期しないエラーが発生しました。"


class TestExchangeCodeForSession:
    async def test_uses_default_redirect_path(
        self, service: AuthCallbackService, make_cookies
    ):
        outcome = await service.exchange_code_for_session(
            make_request("code=xyz"), make_cookies()
        )

        assert outcome == CallbackSuccess(next_path="/home")

    async def test_uses_given_redirect_path(
        self, service: AuthCallbackService, make_cookies
    ):
        outcome = await service.exchange_code_for_session(
            make_request("code=xyz"), make_cookies(), redirect_path="/estimates"
        )

        assert outcome == CallbackSuccess(next_path="/estimates")

    async def test_ignores_foreign_next_targets(
        self, service: AuthCallbackService, make_cookies
    ):
        outcome = await service.exchange_code_for_session(
            make_request("code=xyz&next=//evil.example.com"), make_cookies()
        )

        assert outcome == CallbackSuccess(next_path="/home")

    async def test_fails_without_code(
        self, service: AuthCallbackService, make_cookies
    ):
        outcome = await service.exchange_code_for_session(
            make_request(), make_cookies()
        )

        assert isinstance(outcome, CallbackFailure)
        assert outcome.error_code == ErrorCode.CODE_ERROR

    async def test_session_missing(
        self, service: AuthCallbackService, make_cookies, backend
    ):
        backend.session = None

        outcome = await service.exchange_code_for_session(
            make_request("code=xyz"), make_cookies()
        )

        assert isinstance(outcome, CallbackFailure)
        assert outcome.error_code == ErrorCode.SESSION_ERROR

    async def test_jwt_rejected_code_gets_generic_message(
        self, service: AuthCallbackService, make_cookies, backend
    ):
        backend.exchange_error = BackendError(message="JWT invalid", code="PGRST301")

        outcome = await service.exchange_code_for_session(
            make_request("code=xyz"), make_cookies(), error_path="/oops"
        )

        assert isinstance(outcome, CallbackFailure)
        assert outcome.message == "Authentication failed. Please try again."
        assert urlsplit(outcome.next_path).path == "/oops"

    async def test_absolute_error_path_keeps_its_host(
        self, service: AuthCallbackService, make_cookies
    ):
        outcome = await service.exchange_code_for_session(
            make_request(),
            make_cookies(),
            error_path="https://web.saedgewell.net/auth/callback/error",
        )

        assert isinstance(outcome, CallbackFailure)
        parts = urlsplit(outcome.next_path)
        assert (parts.scheme, parts.netloc) == ("https", "web.saedgewell.net")
        assert parts.path == "/auth/callback/error"
        assert error_query(outcome)["error_code"] == ["CODE_ERROR"]


class TestVerifyTokenHash:
    async def test_next_from_callback_url(
        self, service: AuthCallbackService, make_cookies
    ):
        outcome = await service.verify_token_hash(
            make_request(
                "token_hash=t1&type=magiclink"
                "&callback=https://admin.saedgewell.net/auth/callback?next=/works/1"
            ),
            make_cookies(),
        )

        assert outcome == CallbackSuccess(next_path="/works/1")

    async def test_next_from_callback_url_path(
        self, service: AuthCallbackService, make_cookies
    ):
        outcome = await service.verify_token_hash(
            make_request(
                "token_hash=t1&type=recovery"
                "&callback=https%3A%2F%2Fadmin.saedgewell.net%2Fsettings%2Fpassword"
            ),
            make_cookies(),
        )

        assert outcome == CallbackSuccess(next_path="/settings/password")

    async def test_expired_link(
        self, service: AuthCallbackService, make_cookies, backend
    ):
        backend.verify_error = BackendError(
            message="Email link is invalid or has expired", code="otp_expired"
        )

        outcome = await service.verify_token_hash(
            make_request("token_hash=t1&type=email"), make_cookies()
        )

        assert isinstance(outcome, CallbackFailure)
        assert outcome.error_code == ErrorCode.EXCHANGE_ERROR
        assert "different browser" in outcome.message
        assert error_query(outcome)["code"] == ["otp_expired"]

    async def test_verification_raises(
        self, service: AuthCallbackService, make_cookies, backend
    ):
        backend.verify_exception = TimeoutError("read timed out")

        outcome = await service.verify_token_hash(
            make_request("token_hash=t1&type=email"), make_cookies()
        )

        assert isinstance(outcome, CallbackFailure)
        assert outcome.error_code == ErrorCode.UNKNOWN_ERROR


async def test_handle_auth_callback(backend, config: AuthConfig, make_cookies):
    outcome = await handle_auth_callback(
        make_request("token_hash=t1&type=email&next=/dashboard"),
        make_cookies(),
        backend,
        config,
    )

    assert outcome == CallbackSuccess(next_path="/dashboard")


async def test_create_auth_callback_service(backend, config: AuthConfig, make_cookies):
    service = create_auth_callback_service(backend, config)

    outcome = await service.handle_callback(make_request("code=xyz"), make_cookies())

    assert service.config is config
    assert outcome == CallbackSuccess(next_path="/home")
