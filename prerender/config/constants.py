"""Default values for the prerender configuration."""

from typing import Final


# Environment that lowers log verbosity
ENV_PRODUCTION: Final[str] = "production"

# Snapshot cache age, in days
DEFAULT_CACHE_MAX_AGE_DAYS: Final[float] = 7.0

# Navigation timeout, in milliseconds
DEFAULT_TIMEOUT_MS: Final[int] = 10_000

# Matches every path
DEFAULT_PRERENDERABLE_PATH_PATTERNS: Final[tuple[str, ...]] = (".*",)

# Empty string means "no extension"
DEFAULT_PRERENDERABLE_EXTENSIONS: Final[frozenset[str]] = frozenset(
    {"", "html", "php"}
)

DEFAULT_BOT_USER_AGENTS: Final[frozenset[str]] = frozenset(
    {
        "googlebot",
        "google page speed",
        "chrome-lighthouse",
        "developers.google.com",
        "xml-sitemaps",
        "google-structureddatatestingtool",
        "facebookexternalhit",
        "bingbot",
        "linkedinbot",
        "pinterest",
        "semrushbot",
        "twitterbot",
        "whatsapp",
        "slackbot",
        "w3c_validator",
        "applebot",
        "baiduspider",
        "bitlybot",
        "discordbot",
        "embedly",
        "flipboard",
        "nuzzel",
        "outbrain",
        "quora link preview",
        "qwantify",
        "redditbot",
        "rogerbot",
        "showyoubot",
        "skypeuripreview",
        "tumblr",
        "vkshare",
        "yahoo! slurp",
        "yandex",
    }
)

# Sub-resource URL fragments blocked while rendering
DEFAULT_BLACKLISTED_REQUEST_URLS: Final[tuple[str, ...]] = (
    # Google
    "doubleclick.net",
    "adservice.google",
    ".googleadservices.",
    "google-analytics",
    "google.com/pagead",
    "ga.js",
    "gtm.js",
    ".googleapis.",
    # Facebook
    "connect.facebook.net",
    ".facebook.com/tr",
    # Twitter
    ".addthis.com",
    "static.ads-twitter.",
    # Snapchat
    "/scevent.",
    # ZenDesk
    ".zdassets.",
    "assets.zendesk.com",
    # Salesforce
    ".collect.igodigital.",
    # Common tracking script names
    "/collect.js",
    "/analytics.js",
    "/tracking.js",
    "/collect.min.js",
    "/analytics.min.js",
    "/tracking.min.js",
    # Chat widgets and analytics vendors
    ".tawk.to",
    ".zopim.",
    ".yandex.",
    ".luckyorange.",
    ".criteo.",
    ".hotjar.",
    ".onesignal.",
    ".tiqcdn.",
    ".intercom.com",
    ".lunametrics.",
    ".calltrackingmetrics.",
)

# Query parameters dropped before computing the cache key
DEFAULT_IGNORED_QUERY_PARAMETERS: Final[tuple[str, ...]] = (
    # UTM parameters
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    "utm_id",
    # Click identifiers
    "fbclid",
    "gclid",
    "dclid",
    "msclkid",
    "twclid",
    "igshid",
    # Analytics
    "_ga",
    "_gl",
    "mc_cid",
    "mc_eid",
    # Email tracking
    "mkt_tok",
)

# Log component names
COMPONENT_CONFIG = "config"
COMPONENT_REQUEST = "request"
COMPONENT_STORE = "store"
COMPONENT_RENDERER = "renderer"
COMPONENT_SERVICE = "service"
COMPONENT_SERVER = "server"
COMPONENT_CLI = "cli"

# Environment variable prefix for settings overrides
ENV_PREFIX = "PRERENDER_"
