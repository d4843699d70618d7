import ipaddress
import logging
from collections.abc import Iterable

logger = logging.getLogger(__name__)


def is_same_host(host: str, pattern: str) -> bool:
    if pattern.startswith("*."):
        return host.endswith(pattern[1:])
    else:
        return host == pattern


def is_localhost(host: str) -> bool:
    return host == "localhost" or host.startswith("localhost:")


def _strip_port(host: str) -> str:
    if host.startswith("["):
        # bracketed IPv6 literal, e.g. "[::1]:3000"
        return host[1 : host.index("]")] if "]" in host else host

    hostname, _, port = host.rpartition(":")

    if hostname and port.isdigit():
        return hostname

    return host


def _is_ip_address(hostname: str) -> bool:
    try:
        ipaddress.ip_address(hostname)
    except ValueError:
        return False

    return True


def resolve_cookie_domain(
    host: str,
    override: str | None = None,
    dev_suffixes: Iterable[str] = (),
) -> str:
    """Work out the domain session cookies should be scoped to.

    Examples:
        >>> resolve_cookie_domain("web.saedgewell.test", dev_suffixes=["saedgewell.test"])
        '.saedgewell.test'
        >>> resolve_cookie_domain("saedgewell.net")
        '.saedgewell.net'
        >>> resolve_cookie_domain("admin.saedgewell.com")
        '.saedgewell.com'
        >>> resolve_cookie_domain("localhost:3000")
        'localhost:3000'

    Call this once per response and reuse the result for every cookie
    written by it.
    """
    if override:
        logger.debug("Using configured cookie domain %s", override)
        return override

    hostname = _strip_port(host)

    for suffix in dev_suffixes:
        suffix = suffix.lstrip(".")

        if is_same_host(hostname, f"*.{suffix}"):
            logger.debug("Development host %s, using .%s", host, suffix)
            return f".{suffix}"

    if is_localhost(host):
        # browsers reject a domain attribute for localhost
        return host

    labels = hostname.split(".")

    if _is_ip_address(hostname) or not all(labels):
        logger.warning("Unexpected host format %r, using it as is", host)
        return host

    if len(labels) == 2:
        return f".{hostname}"

    if len(labels) >= 3:
        return "." + ".".join(labels[1:])

    # TODO: reject single-label hosts once every deployment sets cookie_domain
    logger.warning("Unexpected host format %r, using it as is", host)
    return host


def cookie_domain_attribute(domain: str) -> str | None:
    """The value to put in a cookie's ``Domain`` attribute, if any."""
    if not domain or is_localhost(domain) or _is_ip_address(_strip_port(domain)):
        return None

    return domain
