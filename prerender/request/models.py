"""Inbound request model shared by the resolver and the classifier."""

import posixpath
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from urllib.parse import urlsplit


HeaderValue = str | Sequence[str]


@dataclass(frozen=True)
class InboundRequest:
    """Framework-neutral view of a proxied HTTP request.

    Attributes:
        method: HTTP method, as received.
        url: Raw request target (path, query and possibly fragment).
        headers: Request headers; names are matched case-insensitively.
        local_port: Port the connection was accepted on.
        encrypted: Whether the connection itself is TLS-terminated.
    """

    method: str
    url: str = "/"
    headers: Mapping[str, HeaderValue] = field(default_factory=dict)
    local_port: int = 80
    encrypted: bool = False

    def header(self, name: str) -> str:
        """Get a header value by case-insensitive name.

        Repeated headers are joined with commas.

        Args:
            name: Header name.

        Returns:
            Header value, or an empty string if absent.
        """
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                if isinstance(value, str):
                    return value
                return ",".join(value)
        return ""

    @property
    def user_agent(self) -> str:
        """Get the User-Agent header."""
        return self.header("user-agent")

    @property
    def path(self) -> str:
        """Get the request path without query string or fragment."""
        return urlsplit(self.url or "/").path or "/"

    @property
    def extension(self) -> str:
        """Get the lower-cased path extension without its dot.

        Returns:
            Extension such as ``"html"``, or ``""`` when the path has none.
        """
        return posixpath.splitext(self.path)[1][1:].lower()
