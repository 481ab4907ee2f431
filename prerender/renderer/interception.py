"""Sub-resource request filtering during a render."""

from dataclasses import dataclass

from prerender.config.models import PrerenderConfig


@dataclass(frozen=True)
class InterceptionPolicy:
    """Decides which requests a page may make while rendering.

    A non-empty whitelist is exclusive: only matching URLs load. Otherwise
    URLs matching the blacklist are aborted and everything else loads.
    Entries match as case-insensitive substrings of the request URL.
    """

    whitelist: tuple[str, ...] = ()
    blacklist: tuple[str, ...] = ()

    @classmethod
    def from_config(cls, config: PrerenderConfig) -> "InterceptionPolicy":
        """Build the policy from configuration."""
        return cls(
            whitelist=tuple(p.lower() for p in config.whitelisted_request_urls),
            blacklist=tuple(p.lower() for p in config.blacklisted_request_urls),
        )

    @property
    def mode(self) -> str:
        """Name of the list in effect."""
        return "whitelist" if self.whitelist else "blacklist"

    def allows(self, url: str) -> bool:
        """Check whether a request may proceed.

        Args:
            url: Request URL.

        Returns:
            True to continue the request, False to abort it.
        """
        target = url.lower()
        if self.whitelist:
            return any(p in target for p in self.whitelist)
        return not any(p in target for p in self.blacklist)
