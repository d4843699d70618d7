from typing_extensions import Protocol, Unpack

from ._config import CookieOptions
from .models.backend import (
    AssuranceLevelResult,
    ExchangeResult,
    UserResult,
)


class CookieStore(Protocol):
    """Key-value view over the cookies of the current request/response."""

    def get(self, name: str) -> str | None: ...

    def set(self, name: str, value: str, **options: Unpack[CookieOptions]): ...

    def delete(self, name: str, **options: Unpack[CookieOptions]): ...


class MFAApi(Protocol):
    async def get_authenticator_assurance_level(self) -> AssuranceLevelResult: ...


class IdentityBackend(Protocol):
    """The identity provider operations the callback pipeline relies on.

    Implementations report provider-side failures through the ``error``
    field of the returned result. Transport failures may raise; callers
    convert them before they leave the library.
    """

    @property
    def mfa(self) -> MFAApi: ...

    async def verify_otp(self, *, type: str, token_hash: str) -> ExchangeResult: ...

    async def exchange_code_for_session(self, code: str) -> ExchangeResult: ...

    async def get_user(self) -> UserResult: ...
