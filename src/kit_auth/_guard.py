"""Guards for protected routes and server actions.

``require_user`` is what every protected handler calls before doing any
work. It never raises, callers branch on the returned value::

    result = await require_user(client, config)

    if isinstance(result, UserRequirementFailure):
        return RedirectResponse(result.redirect_to)

    user = result.user
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ._config import AuthConfig
from ._mfa import requires_second_factor
from ._storage import IdentityBackend
from .exceptions import AuthenticationError, MultiFactorAuthError
from .models.backend import User
from .utils._url import with_query

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthenticatedUser:
    user: User


@dataclass(frozen=True)
class UserRequirementFailure:
    error: AuthenticationError | MultiFactorAuthError
    redirect_to: str


UserRequirementResult = AuthenticatedUser | UserRequirementFailure


async def require_user(
    client: IdentityBackend, config: AuthConfig | None = None
) -> UserRequirementResult:
    config = config or AuthConfig()

    try:
        result = await client.get_user()
    except Exception as e:
        logger.warning("Failed to fetch the current user", exc_info=e)

        return UserRequirementFailure(
            error=AuthenticationError(), redirect_to=config.sign_in_path
        )

    user = result.data.user

    if result.error or user is None:
        return UserRequirementFailure(
            error=AuthenticationError(), redirect_to=config.sign_in_path
        )

    try:
        pending = await requires_second_factor(client)
    except Exception as e:
        # the second factor can't be confirmed, so treat it as pending
        logger.error("Failed to check multi-factor requirements", exc_info=e)
        pending = True

    if pending:
        return UserRequirementFailure(
            error=MultiFactorAuthError(), redirect_to=config.verify_mfa_path
        )

    return AuthenticatedUser(user=user)


def _is_under(path: str, prefix: str) -> bool:
    prefix = prefix.rstrip("/")

    return path == prefix or path.startswith(prefix + "/")


async def guard_auth_route(
    path: str,
    client: IdentityBackend,
    config: AuthConfig | None = None,
    *,
    auth_prefix: str = "/auth",
) -> str | None:
    """Return where to send a request for ``path``, or None to let it through.

    Signed in users have no business on the auth pages (other than the
    MFA verification page) and are sent home. Pages under the home path
    require a user, and a verified second factor when one is set up.
    """
    config = config or AuthConfig()

    if _is_under(path, auth_prefix):
        try:
            result = await client.get_user()
        except Exception as e:
            logger.warning("Failed to fetch the current user", exc_info=e)
            return None

        if result.data.user is None or path == config.verify_mfa_path:
            return None

        return config.home_path

    if _is_under(path, config.home_path):
        outcome = await require_user(client, config)

        if isinstance(outcome, AuthenticatedUser):
            return None

        if isinstance(outcome.error, AuthenticationError):
            return with_query(outcome.redirect_to, {"next": path})

        return outcome.redirect_to

    return None
