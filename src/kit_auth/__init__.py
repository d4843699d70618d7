from kit_auth._callback import (
    AuthCallbackService,
    create_auth_callback_service,
    handle_auth_callback,
)
from kit_auth._config import AuthConfig, CookieOptions, PKCECookieNames
from kit_auth._context import RequestContext
from kit_auth._cookies import ResponseCookieStore, clear_pkce_cookies
from kit_auth._guard import (
    AuthenticatedUser,
    UserRequirementFailure,
    guard_auth_route,
    require_user,
)
from kit_auth._mfa import requires_second_factor
from kit_auth._storage import CookieStore, IdentityBackend
from kit_auth.models.callback_outcome import (
    CallbackFailure,
    CallbackOutcome,
    CallbackSuccess,
    ErrorCode,
)
from kit_auth.utils._cookie_domain import resolve_cookie_domain
from kit_auth.utils._redirect import is_allowed_redirect
from kit_auth.utils._response import redirect_for_outcome

__all__ = [
    "AuthCallbackService",
    "AuthConfig",
    "AuthenticatedUser",
    "CallbackFailure",
    "CallbackOutcome",
    "CallbackSuccess",
    "CookieOptions",
    "CookieStore",
    "ErrorCode",
    "IdentityBackend",
    "PKCECookieNames",
    "RequestContext",
    "ResponseCookieStore",
    "UserRequirementFailure",
    "clear_pkce_cookies",
    "create_auth_callback_service",
    "guard_auth_route",
    "handle_auth_callback",
    "is_allowed_redirect",
    "redirect_for_outcome",
    "require_user",
    "requires_second_factor",
    "resolve_cookie_domain",
]
