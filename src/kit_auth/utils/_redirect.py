from collections.abc import Iterable
from urllib.parse import urlsplit

DEFAULT_PORTS = {"http": 80, "https": 443}


def _has_unsafe_characters(url: str) -> bool:
    # browsers read "\" as "/" and drop tabs and newlines, so the host they
    # see can differ from the one urlsplit reports
    return "\\" in url or any(
        char.isspace() or ord(char) < 0x20 or ord(char) == 0x7F for char in url
    )


def get_origin(url: str) -> tuple[str, str, int | None] | None:
    """Return ``(scheme, host, port)`` for ``url``, or None if it has no origin.

    URLs with userinfo or characters browsers parse differently have no
    origin.
    """
    if _has_unsafe_characters(url):
        return None

    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        return None

    scheme = parts.scheme.lower()

    if not scheme or not parts.hostname:
        return None

    if parts.username is not None or parts.password is not None:
        return None

    return scheme, parts.hostname, port or DEFAULT_PORTS.get(scheme)


def is_allowed_redirect(candidate_url: str, allow_list: Iterable[str]) -> bool:
    """Check that ``candidate_url`` shares its origin with an allow-listed URL.

    Only scheme, host and port are compared. Anything that does not parse
    is rejected, allow-list entries that do not parse are skipped.
    """
    origin = get_origin(candidate_url)

    if origin is None:
        return False

    for allowed_url in allow_list:
        allowed_origin = get_origin(allowed_url.strip())

        if allowed_origin is not None and allowed_origin == origin:
            return True

    return False
