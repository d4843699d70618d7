from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING

from typing_extensions import Unpack

from ._config import CookieOptions, PKCECookieNames
from ._storage import CookieStore
from .utils._cookie_domain import cookie_domain_attribute

if TYPE_CHECKING:
    from starlette.responses import Response

logger = logging.getLogger(__name__)


def clear_pkce_cookies(cookies: CookieStore, names: PKCECookieNames) -> None:
    """Drop the PKCE working set so a half finished flow can't be replayed."""
    cookies.delete(names.state)
    cookies.delete(names.code_verifier)


class ResponseCookieStore:
    """Cookie store reading from a request and writing to a response.

    Every cookie written or deleted through the store gets the same domain,
    resolved once for the response, together with the configured session
    cookie attributes. Writes are buffered until :meth:`apply` so the
    response object can be created after the callback was evaluated.
    """

    def __init__(
        self,
        request_cookies: Mapping[str, str],
        domain: str,
        defaults: CookieOptions | None = None,
    ):
        self.domain = domain
        self.defaults: CookieOptions = defaults or {}
        self._incoming = dict(request_cookies)
        # None marks a deletion
        self._pending: dict[str, tuple[str | None, CookieOptions]] = {}

    def _options(self, options: CookieOptions) -> CookieOptions:
        merged: CookieOptions = {**self.defaults, **options}
        merged["domain"] = cookie_domain_attribute(self.domain)

        return merged

    def get(self, name: str) -> str | None:
        if name in self._pending:
            return self._pending[name][0]

        return self._incoming.get(name)

    def set(self, name: str, value: str, **options: Unpack[CookieOptions]):
        self._pending[name] = (value, self._options(options))

    def delete(self, name: str, **options: Unpack[CookieOptions]):
        self._pending[name] = (None, self._options(options))

    @property
    def pending(self) -> dict[str, tuple[str | None, CookieOptions]]:
        return dict(self._pending)

    def apply(self, response: Response) -> Response:
        for name, (value, options) in self._pending.items():
            if value is None:
                response.delete_cookie(
                    name,
                    path=options.get("path", "/"),
                    domain=options.get("domain"),
                    secure=options.get("secure", False),
                    httponly=options.get("httponly", False),
                    samesite=options.get("samesite", "lax"),
                )
            else:
                response.set_cookie(name, value, **options)

        logger.debug(
            "Applied %d cookie change(s) for domain %s", len(self._pending), self.domain
        )

        return response
