import logging
from collections.abc import Iterator
from contextlib import contextmanager

from ._storage import IdentityBackend
from .exceptions import MFACheckError
from .models.backend import ELEVATED_LEVEL, AssuranceLevels

logger = logging.getLogger(__name__)

# id(client) -> (flag value before the first check, checks in flight)
_quieted: dict[int, tuple[bool, int]] = {}


@contextmanager
def _quiet_session_warning(client: IdentityBackend) -> Iterator[None]:
    """Silence the "no active session" warning for a single backend call.

    Clients exposing a ``suppress_session_warning`` flag get it switched on
    and restored once the last overlapping check on that client finishes.
    The process-wide warning filters are left alone.
    """
    if not hasattr(client, "suppress_session_warning"):
        yield
        return

    key = id(client)
    previous, depth = _quieted.get(key, (client.suppress_session_warning, 0))
    _quieted[key] = (previous, depth + 1)
    client.suppress_session_warning = True

    try:
        yield
    finally:
        previous, depth = _quieted.pop(key)

        if depth > 1:
            _quieted[key] = (previous, depth - 1)
        else:
            client.suppress_session_warning = previous


def is_second_factor_pending(levels: AssuranceLevels) -> bool:
    return (
        levels.next_level == ELEVATED_LEVEL
        and levels.next_level != levels.current_level
    )


async def requires_second_factor(client: IdentityBackend) -> bool:
    """Whether the current session still has to verify a second factor.

    Raises:
        MFACheckError: if the backend reports an error for the query
    """
    with _quiet_session_warning(client):
        result = await client.mfa.get_authenticator_assurance_level()

    if result.error:
        logger.error("Failed to get assurance level: %s", result.error.message)

        raise MFACheckError()

    return is_second_factor_pending(result.data or AssuranceLevels())
