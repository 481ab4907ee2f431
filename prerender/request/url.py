"""URL reconstruction and canonicalization for proxied requests."""

from collections.abc import Iterable
from urllib.parse import unquote_plus, urlsplit, urlunsplit

from prerender.config.constants import DEFAULT_IGNORED_QUERY_PARAMETERS
from prerender.request.models import InboundRequest


# Default port per scheme, left out of the rendered authority.
DEFAULT_PORTS: dict[str, str] = {"http": "80", "https": "443"}

# Dropped for every scheme so cache keys written by existing deployments
# stay valid.
LEGACY_OMITTED_PORT = "433"

FALLBACK_HOST = "localhost"


def split_host_header(value: str) -> tuple[str, str]:
    """Split a Host header into host and port.

    The split happens on the first colon after a bracketed IPv6 literal,
    so ``[::1]:8080`` yields ``("[::1]", "8080")``.

    Args:
        value: Host header value.

    Returns:
        Tuple of (host, port); port is empty when absent.
    """
    offset = value.index("]") + 1 if value.startswith("[") and "]" in value else 0
    index = value.find(":", offset)
    if index == -1:
        return value, ""
    return value[:index], value[index + 1 :]


def omits_port(protocol: str, port: str) -> bool:
    """Check whether a port is implied by the protocol.

    Args:
        protocol: URL scheme, such as ``http``.
        port: Port as a string.

    Returns:
        True if the port is left out of the authority.
    """
    return port == LEGACY_OMITTED_PORT or DEFAULT_PORTS.get(protocol.lower()) == port


def parse_request_url(request: InboundRequest) -> str:
    """Reconstruct the externally visible URL of a proxied request.

    Forwarding headers (``X-Forwarded-Proto``, ``X-Forwarded-Host``,
    ``X-Forwarded-Port``) take precedence over the Host header and the
    connection's own transport details.

    Args:
        request: The inbound request.

    Returns:
        Absolute URL ``protocol://host[:port]path``.
    """
    protocol = request.header("x-forwarded-proto")
    host = request.header("x-forwarded-host")
    port = request.header("x-forwarded-port")

    if not protocol:
        protocol = "https" if request.encrypted else "http"

    header_host, header_port = split_host_header(request.header("host"))

    if not host:
        host = header_host or FALLBACK_HOST

    if not port:
        port = header_port or str(request.local_port)

    authority = host if omits_port(protocol, port) else f"{host}:{port}"
    path = request.url or "/"
    if not path.startswith("/"):
        path = f"/{path}"

    return f"{protocol}://{authority}{path}"


def _filter_and_sort_query(query: str, ignored: set[str]) -> str:
    """Drop ignored parameters and sort the rest by key.

    Parameter segments are kept byte-for-byte so a canonical query string
    canonicalizes to itself. Sorting is stable for repeated keys.
    """
    kept: list[tuple[str, str]] = []
    for segment in query.split("&"):
        if not segment:
            continue
        key = unquote_plus(segment.split("=", 1)[0])
        if key.lower() in ignored:
            continue
        kept.append((key, segment))

    kept.sort(key=lambda pair: pair[0])
    return "&".join(segment for _, segment in kept)


def canonicalize_url(
    url: str,
    ignored_parameters: Iterable[str] = DEFAULT_IGNORED_QUERY_PARAMETERS,
) -> str:
    """Canonicalize a URL into a cache key.

    Canonicalization includes:
    - Lowercasing the scheme and host
    - Removing ignored query parameters (every occurrence)
    - Sorting the remaining query parameters by key
    - Removing the fragment

    The operation is idempotent.

    Args:
        url: Absolute URL.
        ignored_parameters: Query parameter names to remove.

    Returns:
        Canonical URL string.
    """
    if not url:
        return url

    parsed = urlsplit(url)
    ignored = {p.lower() for p in ignored_parameters}
    query = _filter_and_sort_query(parsed.query, ignored)

    return urlunsplit(
        (
            parsed.scheme.lower(),
            parsed.netloc.lower(),
            parsed.path or "/",
            query,
            "",
        )
    )


def resolve_cache_key(
    request: InboundRequest,
    ignored_parameters: Iterable[str] = DEFAULT_IGNORED_QUERY_PARAMETERS,
) -> str:
    """Derive the cache key for a proxied request.

    Args:
        request: The inbound request.
        ignored_parameters: Query parameter names to remove.

    Returns:
        Canonical URL used to address the snapshot.
    """
    return canonicalize_url(parse_request_url(request), ignored_parameters)
