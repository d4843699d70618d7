import logging
from collections.abc import Awaitable, Callable

from fastapi import APIRouter, HTTPException, Request, Response

from ._callback import AuthCallbackService
from ._config import AuthConfig
from ._context import Context, IdentityBackendFactory, RequestContext
from ._guard import AuthenticatedUser, require_user
from ._route import Route
from .models.backend import User
from .utils._response import redirect_for_outcome

logger = logging.getLogger(__name__)


class AuthCallbackRouter(APIRouter):
    """Mounts the auth callback endpoint.

    Example:
        def get_backend(request: Request, cookies: CookieStore) -> IdentityBackend:
            return GoTrueBackend(SUPABASE_URL, SUPABASE_ANON_KEY, cookies=cookies)

        router = AuthCallbackRouter(get_backend, AuthConfig.from_env())
        app.include_router(router)

        @app.get("/home")
        async def home(user: User = Depends(router.require_user)): ...
    """

    _context: Context

    def __init__(
        self,
        get_identity_backend: IdentityBackendFactory,
        config: AuthConfig | None = None,
        callback_path: str = "/auth/callback",
    ):
        super().__init__()

        self._context = Context(
            get_identity_backend=get_identity_backend,
            config=config,
        )

        for route in self.auth_routes(callback_path):
            self.add_api_route(
                route.path,
                route.to_fastapi_endpoint(self._context),
                methods=route.methods,
                operation_id=route.operation_id,
                summary=route.summary,
                include_in_schema=route.include_in_schema,
            )

    @property
    def config(self) -> AuthConfig:
        return self._context.config

    def auth_routes(self, callback_path: str) -> list[Route]:
        return [
            Route(
                path=callback_path,
                methods=["GET"],
                function=self.handle_callback,
                operation_id="auth_callback",
                summary="Identity provider callback",
            ),
        ]

    async def handle_callback(self, request: Request, context: Context) -> Response:
        request_context = RequestContext.from_request(request, context.config)
        cookies = context.create_cookie_store(request, request_context)

        logger.debug(
            "Handling auth callback for host %s, cookie domain %s",
            request_context.host,
            cookies.domain,
        )

        client = await context.identity_backend_for(request, cookies)
        service = AuthCallbackService(client, context.config)

        outcome = await service.handle_callback(request_context, cookies)

        return cookies.apply(redirect_for_outcome(outcome))

    @property
    def require_user(self) -> Callable[[Request], Awaitable[User]]:
        """FastAPI dependency returning the signed in user.

        Requests without a user, or with a pending second factor, are
        redirected to the sign in or MFA verification page.
        """
        context = self._context

        async def dependency(request: Request) -> User:
            cookies = context.create_cookie_store(request)
            client = await context.identity_backend_for(request, cookies)

            result = await require_user(client, context.config)

            if isinstance(result, AuthenticatedUser):
                return result.user

            raise HTTPException(
                status_code=303,
                detail=result.error.error_description,
                headers={"Location": result.redirect_to},
            )

        return dependency
