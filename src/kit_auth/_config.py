from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Literal, TypedDict

SEVEN_DAYS = 60 * 60 * 24 * 7

# Checked in order, first one set wins
COOKIE_DOMAIN_ENV_VARS = (
    "AUTH_COOKIE_DOMAIN",
    "COOKIE_DOMAIN",
    "SUPABASE_AUTH_COOKIE_DOMAIN",
)


class CookieOptions(TypedDict, total=False):
    """Cookie attributes, named after Starlette's ``set_cookie`` arguments."""

    domain: str | None
    path: str
    max_age: int
    secure: bool
    httponly: bool
    samesite: Literal["lax", "strict", "none"]


def default_session_cookie_options() -> CookieOptions:
    return {
        "path": "/",
        "secure": True,
        # session cookies are shared across subdomains of the admin apps
        "samesite": "none",
        "httponly": True,
        "max_age": SEVEN_DAYS,
    }


@dataclass(frozen=True)
class PKCECookieNames:
    state: str = "sb-oauth-state"
    code_verifier: str = "sb-oauth-code-verifier"
    redirect_to: str = "sb-redirect-to"


@dataclass
class AuthConfig:
    """Configuration for the callback pipeline and the session guards."""

    # Operator override for the cookie domain, wins over host derivation
    cookie_domain: str | None = None

    # Development suffixes like "saedgewell.test": any host under one of
    # them shares cookies on ".<suffix>"
    dev_domain_suffixes: list[str] = field(default_factory=list)

    # Origins a stored redirect_to target may point at
    allowed_redirect_origins: list[str] = field(default_factory=list)

    default_redirect_path: str = "/"
    error_path: str = "/auth/callback/error"
    sign_in_path: str = "/"
    verify_mfa_path: str = "/"
    home_path: str = "/home"

    # Used to rebuild the public URL when proxies hide it
    default_host: str = "localhost"
    default_scheme: str = "https"

    locale: str = "en"

    pkce_cookies: PKCECookieNames = field(default_factory=PKCECookieNames)
    session_cookie: CookieOptions = field(
        default_factory=default_session_cookie_options
    )

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, **overrides
    ) -> AuthConfig:
        environ = os.environ if environ is None else environ

        cookie_domain = next(
            (environ[name] for name in COOKIE_DOMAIN_ENV_VARS if environ.get(name)),
            None,
        )

        values = {
            "cookie_domain": cookie_domain,
            "allowed_redirect_origins": _split_list(
                environ.get("AUTH_ALLOWED_REDIRECT_ORIGINS")
            ),
            "dev_domain_suffixes": _split_list(
                environ.get("AUTH_DEV_DOMAIN_SUFFIXES")
            ),
            "locale": environ.get("AUTH_LOCALE") or "en",
        }
        values.update(overrides)

        return cls(**values)


def _split_list(raw: str | None) -> list[str]:
    if not raw:
        return []

    return [item.strip() for item in raw.split(",") if item.strip()]
