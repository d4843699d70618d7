from collections.abc import Mapping
from urllib.parse import parse_qs, urlencode, urlsplit, urlunsplit


def build_public_url(scheme: str, host: str, path: str, query: str = "") -> str:
    """Rebuild the URL the browser actually requested.

    Behind a proxy the URL seen by the app is usually an internal
    ``localhost:<port>`` address, so scheme and host come from the
    forwarded headers instead.
    """
    return urlunsplit((scheme, host, path or "/", query, ""))


def with_query(path: str, params: Mapping[str, str | None]) -> str:
    """Add ``params`` to the query string of ``path``, replacing existing keys."""
    parts = urlsplit(path)

    query = {
        key: values[-1]
        for key, values in parse_qs(parts.query, keep_blank_values=True).items()
    }
    query.update({key: value for key, value in params.items() if value is not None})

    return urlunsplit(
        (parts.scheme, parts.netloc, parts.path or "/", urlencode(query), parts.fragment)
    )


def is_local_path(path: str) -> bool:
    # "//host" and "/\host" are treated as hosts by browsers
    return path.startswith("/") and not path.startswith(("//", "/\\"))


def resolve_next_path(callback: str | None, default: str) -> str:
    """Pick the path to continue to from a ``next``/``callback`` parameter.

    The parameter may be a local path or an absolute URL. For an absolute
    URL its own ``next`` parameter wins, otherwise its path is used. Only
    a local path is ever returned, anything else falls back to ``default``.
    """
    if not callback:
        return default

    parts = urlsplit(callback)

    if parts.scheme or parts.netloc:
        nested = parse_qs(parts.query).get("next")
        candidate = nested[-1] if nested else parts.path
    else:
        candidate = parts.path

    if candidate and is_local_path(candidate):
        return candidate

    return default
