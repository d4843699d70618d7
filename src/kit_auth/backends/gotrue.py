"""Identity backend talking to a GoTrue (Supabase Auth) compatible REST API."""

from __future__ import annotations

import logging
import warnings
from typing import Any

import httpx
import jwt
from pydantic import ValidationError

from .._storage import CookieStore
from ..exceptions import SessionContextWarning
from ..models.backend import (
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

logger = logging.getLogger(__name__)

ASSURANCE_LEVELS = ("aal1", "aal2")

PKCE_VERIFIER_MISSING = (
    "PKCE code verifier not found in storage. This can happen if the auth "
    "flow was initiated in a different browser or device, or if the storage "
    "was cleared."
)


class GoTrueMFA:
    def __init__(self, backend: GoTrueBackend):
        self._backend = backend

    async def get_authenticator_assurance_level(self) -> AssuranceLevelResult:
        """Report the session's assurance level and the one it could reach.

        The current level comes from the ``aal`` claim of the access token,
        the next level is ``aal2`` as soon as the user has a verified factor.
        """
        backend = self._backend
        access_token = backend.access_token

        if not access_token:
            if not backend.suppress_session_warning:
                warnings.warn(
                    "Assurance level requested without an active session",
                    SessionContextWarning,
                    stacklevel=2,
                )

            return AssuranceLevelResult(data=AssuranceLevels())

        try:
            claims = jwt.decode(access_token, options={"verify_signature": False})
        except jwt.PyJWTError as e:
            logger.error("Could not read access token claims", exc_info=e)

            return AssuranceLevelResult(
                error=BackendError(message="Invalid access token", code="bad_jwt")
            )

        current_level = claims.get("aal")
        if current_level not in ASSURANCE_LEVELS:
            current_level = None

        user_result = await backend.get_user()

        if user_result.error or user_result.data.user is None:
            return AssuranceLevelResult(
                error=user_result.error
                or BackendError(message="Auth session missing!")
            )

        if user_result.data.user.has_verified_factor:
            next_level = "aal2"
        else:
            next_level = current_level

        return AssuranceLevelResult(
            data=AssuranceLevels(current_level=current_level, next_level=next_level)
        )


class GoTrueBackend:
    """Identity backend for a GoTrue server.

    Args:
        url: Base URL of the auth API, e.g. ``https://<project>.supabase.co/auth/v1``.
        api_key: The project's public (anon) API key.
        cookies: Cookie store of the current request. The PKCE code verifier
            is read from it and issued session tokens are written to it.
        storage_key: Prefix of the session token cookies.
        code_verifier_cookie: Name of the cookie holding the PKCE verifier.
        client: Optional shared ``httpx.AsyncClient``.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        cookies: CookieStore,
        *,
        storage_key: str = "sb-auth",
        code_verifier_cookie: str = "sb-oauth-code-verifier",
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ):
        self.url = url.rstrip("/")
        self.api_key = api_key
        self.cookies = cookies
        self.storage_key = storage_key
        self.code_verifier_cookie = code_verifier_cookie
        self.timeout = timeout
        self.suppress_session_warning = False

        self._client = client
        self._mfa = GoTrueMFA(self)

    @property
    def mfa(self) -> GoTrueMFA:
        return self._mfa

    @property
    def access_token_cookie(self) -> str:
        return f"{self.storage_key}-access-token"

    @property
    def refresh_token_cookie(self) -> str:
        return f"{self.storage_key}-refresh-token"

    @property
    def access_token(self) -> str | None:
        return self.cookies.get(self.access_token_cookie)

    def _headers(self, access_token: str | None = None) -> dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Accept": "application/json",
        }

        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"

        return headers

    async def send_request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
        access_token: str | None = None,
    ) -> httpx.Response:
        """Send a request to the auth API.

        Transport errors are not handled here and propagate to the caller.
        """
        url = f"{self.url}{path}"
        headers = self._headers(access_token)

        if self._client is not None:
            return await self._client.request(
                method, url, params=params, json=json, headers=headers
            )

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.request(
                method, url, params=params, json=json, headers=headers
            )

    def parse_error(self, response: httpx.Response) -> BackendError:
        try:
            body = response.json()
        except ValueError:
            body = {}

        if not isinstance(body, dict):
            body = {}

        message = (
            body.get("msg")
            or body.get("message")
            or body.get("error_description")
            or body.get("error")
            or response.reason_phrase
            or "Unknown error"
        )
        code = body.get("error_code") or body.get("error") or body.get("code")

        return BackendError(
            message=str(message),
            code=str(code) if code is not None else None,
            status=response.status_code,
        )

    def save_session(self, session: Session) -> None:
        options = {"max_age": session.expires_in} if session.expires_in else {}

        self.cookies.set(self.access_token_cookie, session.access_token, **options)

        if session.refresh_token:
            self.cookies.set(self.refresh_token_cookie, session.refresh_token)

    def _session_result(self, response: httpx.Response) -> ExchangeResult:
        if response.is_error:
            error = self.parse_error(response)
            logger.warning(
                "Auth API returned %s: %s", response.status_code, error.message
            )

            return ExchangeResult(error=error)

        body = response.json()

        try:
            if "access_token" in body:
                session = Session.model_validate(body)
                user = session.user
            else:
                session = None
                user = User.model_validate(body.get("user") or body)
        except ValidationError as e:
            logger.error("Failed to parse auth API response", exc_info=e)

            return ExchangeResult(
                error=BackendError(
                    message="Failed to parse auth response",
                    status=response.status_code,
                )
            )

        if session is not None:
            self.save_session(session)

        return ExchangeResult(data=SessionData(session=session, user=user))

    async def verify_otp(self, *, type: str, token_hash: str) -> ExchangeResult:
        response = await self.send_request(
            "POST", "/verify", json={"type": type, "token_hash": token_hash}
        )

        return self._session_result(response)

    async def exchange_code_for_session(self, code: str) -> ExchangeResult:
        code_verifier = self.cookies.get(self.code_verifier_cookie)

        if not code_verifier:
            return ExchangeResult(
                error=BackendError(
                    message=PKCE_VERIFIER_MISSING, code="pkce_verifier_not_found"
                )
            )

        response = await self.send_request(
            "POST",
            "/token",
            params={"grant_type": "pkce"},
            json={"auth_code": code, "code_verifier": code_verifier},
        )

        return self._session_result(response)

    async def get_user(self) -> UserResult:
        access_token = self.access_token

        if not access_token:
            return UserResult(
                error=BackendError(
                    message="Auth session missing!", code="session_not_found"
                )
            )

        response = await self.send_request("GET", "/user", access_token=access_token)

        if response.is_error:
            return UserResult(error=self.parse_error(response))

        try:
            user = User.model_validate(response.json())
        except ValidationError as e:
            logger.error("Failed to parse user response", exc_info=e)

            return UserResult(
                error=BackendError(
                    message="Failed to parse user response",
                    status=response.status_code,
                )
            )

        return UserResult(data=UserData(user=user))
