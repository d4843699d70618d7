"""Auth callback handling.

Receives the redirect back from the identity provider and turns it into a
``CallbackOutcome``. Three kinds of callbacks are understood:

- PKCE browser redirects carrying ``state`` and ``code``, validated against
  the state, code verifier and redirect target stored in cookies when the
  login was started
- plain authorization code redirects carrying ``code``
- email links carrying ``token_hash`` and ``type``

Every evaluation is a single pass. Failures never raise, they resolve to
a ``CallbackFailure`` pointing at the error page, and the PKCE cookies are
deleted exactly once whatever the outcome.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Iterator
from contextlib import contextmanager

from ._config import AuthConfig
from ._context import RequestContext
from ._cookies import clear_pkce_cookies
from ._storage import CookieStore, IdentityBackend
from .models.backend import BackendError
from .models.callback_outcome import (
    CallbackFailure,
    CallbackOutcome,
    CallbackSuccess,
    ErrorCode,
)
from .utils._messages import (
    get_auth_error_message,
    get_error_code_message,
    is_verifier_error,
)
from .utils._redirect import is_allowed_redirect
from .utils._url import resolve_next_path, with_query

logger = logging.getLogger(__name__)


class AuthCallbackService:
    def __init__(self, client: IdentityBackend, config: AuthConfig | None = None):
        self.client = client
        self.config = config or AuthConfig()

    @property
    def cookie_names(self):
        return self.config.pkce_cookies

    @contextmanager
    def _single_use(self, cookies: CookieStore) -> Iterator[None]:
        try:
            yield
        finally:
            # a failing cookie store must not replace the callback outcome
            try:
                clear_pkce_cookies(cookies, self.cookie_names)
            except Exception as e:
                logger.error("Failed to clear PKCE cookies", exc_info=e)

    def _failure(
        self,
        error_code: ErrorCode,
        *,
        message: str | None = None,
        provider_code: str | None = None,
        error_path: str | None = None,
    ) -> CallbackFailure:
        message = message or get_error_code_message(
            error_code.value, self.config.locale
        )

        next_path = with_query(
            error_path or self.config.error_path,
            {
                "error_code": error_code.value,
                "code": provider_code,
                "error": message,
            },
        )

        return CallbackFailure(
            error_code=error_code, message=message, next_path=next_path
        )

    def _provider_failure(
        self,
        error_code: ErrorCode,
        error: BackendError,
        error_path: str | None = None,
    ) -> CallbackFailure:
        return self._failure(
            error_code,
            message=get_auth_error_message(
                error.message, error.code, self.config.locale
            ),
            provider_code=error.code,
            error_path=error_path,
        )

    def _unexpected_failure(
        self, exc: Exception, error_path: str | None = None
    ) -> CallbackFailure:
        code = getattr(exc, "code", None)
        provider_code = str(code) if isinstance(code, str | int) else None

        if is_verifier_error(str(exc)):
            return self._failure(
                ErrorCode.CODE_VERIFIER_ERROR,
                provider_code=provider_code,
                error_path=error_path,
            )

        return self._failure(
            ErrorCode.UNKNOWN_ERROR,
            provider_code=provider_code,
            error_path=error_path,
        )

    async def _exchange(
        self, code: str, error_path: str | None = None
    ) -> CallbackFailure | None:
        """Trade ``code`` for a session, returning a failure if that didn't work."""
        try:
            result = await self.client.exchange_code_for_session(code)
        except Exception as e:
            logger.error("Unexpected error during code exchange", exc_info=e)

            return self._unexpected_failure(e, error_path)

        if result.error:
            logger.error(
                "Code exchange rejected: %s (code=%s, status=%s)",
                result.error.message,
                result.error.code,
                result.error.status,
            )

            return self._provider_failure(
                ErrorCode.EXCHANGE_ERROR, result.error, error_path
            )

        if result.session is None:
            logger.error("No session data received after code exchange")

            return self._failure(ErrorCode.SESSION_ERROR, error_path=error_path)

        return None

    def get_redirect_url(
        self, cookies: CookieStore, error_path: str | None = None
    ) -> CallbackOutcome:
        """Read and validate the target stored before leaving for the provider."""
        redirect_to = cookies.get(self.cookie_names.redirect_to)

        if not redirect_to:
            logger.error("No redirect target stored for this login")

            return self._failure(ErrorCode.REDIRECT_ERROR, error_path=error_path)

        if not is_allowed_redirect(redirect_to, self.config.allowed_redirect_origins):
            logger.error("Stored redirect target %r is not allowed", redirect_to)

            return self._failure(ErrorCode.INVALID_REDIRECT, error_path=error_path)

        return CallbackSuccess(next_path=redirect_to)

    async def _oauth_callback(
        self,
        cookies: CookieStore,
        state: str | None,
        code: str | None,
        error_path: str | None = None,
    ) -> CallbackOutcome:
        if not state:
            logger.error("No state found in request")

            return self._failure(ErrorCode.STATE_ERROR, error_path=error_path)

        stored_state = cookies.get(self.cookie_names.state)

        if not stored_state or not secrets.compare_digest(
            stored_state.encode(), state.encode()
        ):
            logger.error("State in request does not match the stored state")

            return self._failure(ErrorCode.STATE_MISMATCH, error_path=error_path)

        if not code:
            logger.error("No authorization code received in callback")

            return self._failure(ErrorCode.CODE_ERROR, error_path=error_path)

        if not cookies.get(self.cookie_names.code_verifier):
            logger.error("No PKCE code verifier cookie found")

            return self._failure(ErrorCode.CODE_VERIFIER_ERROR, error_path=error_path)

        if failure := await self._exchange(code, error_path):
            return failure

        return self.get_redirect_url(cookies, error_path)

    async def oauth_callback(
        self,
        cookies: CookieStore,
        state: str | None,
        code: str | None,
        *,
        error_path: str | None = None,
    ) -> CallbackOutcome:
        """Complete a PKCE browser redirect using the state stored in cookies."""
        with self._single_use(cookies):
            return await self._oauth_callback(cookies, state, code, error_path)

    async def _exchange_code_for_session(
        self,
        request: RequestContext,
        redirect_path: str | None = None,
        error_path: str | None = None,
    ) -> CallbackOutcome:
        code = request.get("code")

        if code:
            if failure := await self._exchange(code, error_path):
                return failure
        elif request.get("error"):
            return self._oauth_error(request, error_path)
        else:
            logger.error("No authorization code received in callback")

            return self._failure(ErrorCode.CODE_ERROR, error_path=error_path)

        return CallbackSuccess(
            next_path=resolve_next_path(
                request.get("next"),
                redirect_path or self.config.default_redirect_path,
            )
        )

    async def exchange_code_for_session(
        self,
        request: RequestContext,
        cookies: CookieStore,
        *,
        redirect_path: str | None = None,
        error_path: str | None = None,
    ) -> CallbackOutcome:
        """Exchange the ``code`` query parameter for a session."""
        with self._single_use(cookies):
            return await self._exchange_code_for_session(
                request, redirect_path, error_path
            )

    async def _verify_token_hash(
        self,
        request: RequestContext,
        redirect_path: str | None = None,
        error_path: str | None = None,
    ) -> CallbackOutcome:
        token_hash = request.get("token_hash")
        otp_type = request.get("type")

        if not token_hash or not otp_type:
            logger.error("Callback is missing token_hash or type")

            return self._failure(ErrorCode.UNKNOWN_ERROR, error_path=error_path)

        try:
            result = await self.client.verify_otp(
                type=otp_type, token_hash=token_hash
            )
        except Exception as e:
            logger.error("Unexpected error during token hash verification", exc_info=e)

            return self._unexpected_failure(e, error_path)

        if result.error:
            logger.error(
                "Token hash verification rejected: %s (code=%s)",
                result.error.message,
                result.error.code,
            )

            return self._provider_failure(
                ErrorCode.EXCHANGE_ERROR, result.error, error_path
            )

        return CallbackSuccess(
            next_path=resolve_next_path(
                request.get("next") or request.get("callback"),
                redirect_path or self.config.default_redirect_path,
            )
        )

    async def verify_token_hash(
        self,
        request: RequestContext,
        cookies: CookieStore,
        *,
        redirect_path: str | None = None,
        error_path: str | None = None,
    ) -> CallbackOutcome:
        """Verify an emailed ``token_hash`` and continue to the ``next`` path."""
        with self._single_use(cookies):
            return await self._verify_token_hash(request, redirect_path, error_path)

    def _oauth_error(
        self, request: RequestContext, error_path: str | None = None
    ) -> CallbackFailure:
        error = request.get("error") or ""
        description = request.get("error_description")

        logger.error("Provider returned an error: %s (%s)", error, description)

        return self._provider_failure(
            ErrorCode.OAUTH_ERROR,
            BackendError(message=description or error, code=error or None),
            error_path,
        )

    async def _dispatch(
        self,
        request: RequestContext,
        cookies: CookieStore,
        redirect_path: str | None,
        error_path: str | None,
    ) -> CallbackOutcome:
        code = request.get("code")
        token_hash = request.get("token_hash")

        if request.get("error") and not code and not token_hash:
            return self._oauth_error(request, error_path)

        if request.get("state"):
            logger.debug("Handling PKCE redirect")
            return await self._oauth_callback(
                cookies, request.get("state"), code, error_path
            )

        if code:
            logger.debug("Exchanging code for session")
            return await self._exchange_code_for_session(
                request, redirect_path, error_path
            )

        if token_hash and request.get("type"):
            logger.debug("Verifying token hash")
            return await self._verify_token_hash(request, redirect_path, error_path)

        logger.error("Invalid callback request, no code or token hash found")

        return self._failure(ErrorCode.UNKNOWN_ERROR, error_path=error_path)

    async def handle_callback(
        self,
        request: RequestContext,
        cookies: CookieStore,
        *,
        redirect_path: str | None = None,
        error_path: str | None = None,
    ) -> CallbackOutcome:
        """Process an incoming callback request.

        Returns the path to continue to, or a typed error whose
        ``next_path`` points at the error page.
        """
        with self._single_use(cookies):
            try:
                return await self._dispatch(
                    request, cookies, redirect_path, error_path
                )
            except Exception as e:
                logger.error("Error during callback processing", exc_info=e)

                return self._failure(ErrorCode.UNKNOWN_ERROR, error_path=error_path)


def create_auth_callback_service(
    client: IdentityBackend, config: AuthConfig | None = None
) -> AuthCallbackService:
    return AuthCallbackService(client, config)


async def handle_auth_callback(
    request: RequestContext,
    cookies: CookieStore,
    client: IdentityBackend,
    config: AuthConfig | None = None,
    *,
    redirect_path: str | None = None,
    error_path: str | None = None,
) -> CallbackOutcome:
    service = AuthCallbackService(client, config)

    return await service.handle_callback(
        request, cookies, redirect_path=redirect_path, error_path=error_path
    )
