from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from fastapi import Request, Response

if TYPE_CHECKING:
    from ._context import Context


class Route:
    def __init__(
        self,
        path: str,
        methods: list[str],
        function: Callable[[Request, "Context"], Awaitable[Response]],
        operation_id: str | None = None,
        summary: str | None = None,
        include_in_schema: bool = True,
    ):
        self.path = path
        self.methods = methods
        self.function = function
        self.operation_id = operation_id
        self.summary = summary
        self.include_in_schema = include_in_schema

    def to_fastapi_endpoint(self, context: "Context") -> Callable[..., Any]:
        async def wrapper(request: Request) -> Response:
            return await self.function(request, context)

        return wrapper
