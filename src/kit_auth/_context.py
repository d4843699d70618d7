from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING
from urllib.parse import parse_qsl, urlsplit

from ._config import AuthConfig
from ._cookies import ResponseCookieStore
from ._storage import CookieStore, IdentityBackend
from .utils._cookie_domain import resolve_cookie_domain
from .utils._url import build_public_url

if TYPE_CHECKING:
    from starlette.requests import Request

FORWARDED_HEADERS = ("host", "x-forwarded-proto", "referer", "origin")


def _freeze(values: Mapping[str, str]) -> Mapping[str, str]:
    return MappingProxyType(dict(values))


@dataclass(frozen=True)
class RequestContext:
    """The parts of an incoming callback request the pipeline looks at."""

    url: str
    query_params: Mapping[str, str] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "query_params", _freeze(self.query_params))
        object.__setattr__(
            self,
            "headers",
            _freeze({key.lower(): value for key, value in self.headers.items()}),
        )

    @classmethod
    def from_url(
        cls,
        url: str,
        headers: Mapping[str, str] | None = None,
        config: AuthConfig | None = None,
    ) -> RequestContext:
        config = config or AuthConfig()
        headers = {key.lower(): value for key, value in (headers or {}).items()}
        parts = urlsplit(url)

        host = headers.get("host") or parts.netloc or config.default_host
        headers.setdefault("host", host)

        scheme = (
            headers.get("x-forwarded-proto", "").split(",")[0].strip()
            or config.default_scheme
        )

        return cls(
            url=build_public_url(scheme, host, parts.path, parts.query),
            # the last value wins for repeated parameters
            query_params=dict(parse_qsl(parts.query, keep_blank_values=True)),
            headers=headers,
        )

    @classmethod
    def from_request(
        cls, request: Request, config: AuthConfig | None = None
    ) -> RequestContext:
        headers = {
            name: request.headers[name]
            for name in FORWARDED_HEADERS
            if name in request.headers
        }

        return cls.from_url(str(request.url), headers=headers, config=config)

    @property
    def host(self) -> str:
        return self.headers.get("host") or urlsplit(self.url).netloc

    @property
    def scheme(self) -> str:
        return urlsplit(self.url).scheme

    @property
    def path(self) -> str:
        return urlsplit(self.url).path

    def get(self, name: str) -> str | None:
        return self.query_params.get(name) or None


IdentityBackendFactory = Callable[
    ["Request", CookieStore], IdentityBackend | Awaitable[IdentityBackend]
]


class Context:
    def __init__(
        self,
        get_identity_backend: IdentityBackendFactory,
        config: AuthConfig | None = None,
    ):
        self.get_identity_backend = get_identity_backend
        self.config: AuthConfig = config or AuthConfig()

    def cookie_domain_for(self, host: str) -> str:
        return resolve_cookie_domain(
            host,
            override=self.config.cookie_domain,
            dev_suffixes=self.config.dev_domain_suffixes,
        )

    def create_cookie_store(
        self, request: Request, request_context: RequestContext | None = None
    ) -> ResponseCookieStore:
        request_context = request_context or RequestContext.from_request(
            request, self.config
        )

        return ResponseCookieStore(
            request.cookies,
            domain=self.cookie_domain_for(request_context.host),
            defaults=self.config.session_cookie,
        )

    async def identity_backend_for(
        self, request: Request, cookies: CookieStore
    ) -> IdentityBackend:
        backend = self.get_identity_backend(request, cookies)

        if inspect.isawaitable(backend):
            backend = await backend

        return backend
