"""Error hints for configuration validation errors.

Provides user-friendly hints with actionable remediation steps
for common validation errors.
"""

from typing import Final


# Mapping of error types to user-friendly hints
ERROR_HINTS: Final[dict[str, str]] = {
    "missing": "This setting is required. Please add it to your configuration.",
    "extra_forbidden": "Unknown setting. Check the spelling of the key.",
    "int_type": "This setting must be an integer (whole number).",
    "int_parsing": "This setting must be an integer (whole number).",
    "float_type": "This setting must be a number.",
    "float_parsing": "This setting must be a number.",
    "string_type": "This setting must be a text string.",
    "bool_type": "This setting must be true or false.",
    "list_type": "This setting must be a list.",
    "tuple_type": "This setting must be a list.",
    "dict_type": "This setting must be a mapping.",
    "greater_than": "The value is too small. It must be greater than zero.",
    "greater_than_equal": "The value is too small. Check the minimum allowed.",
    "value_error": "Check the value format.",
    "file_not_found": "The file does not exist. Check the file path.",
    "yaml_parse_error": "Invalid YAML syntax. Check for proper indentation and formatting.",
}

# Setting-specific hints for more context
FIELD_HINTS: Final[dict[str, str]] = {
    "database": "Provide either 'path' (SQLite file) or 'url' (sqlite:///path).",
    "path": "Path to the SQLite snapshot database (e.g., './var/snapshots.sqlite').",
    "url": "SQLite URL in the form 'sqlite:///relative/or/absolute/path.sqlite'.",
    "cache_max_age_days": "Number of days a snapshot is served before re-rendering (>= 0).",
    "timeout_ms": "Navigation timeout in milliseconds; must be greater than zero.",
    "prerenderable_path_patterns": "List of regular expressions matched against the request path.",
    "prerenderable_extensions": "List of extensions without dot; '' means 'no extension'.",
    "bot_user_agents": "List of exact, case-insensitive user agent strings.",
    "whitelisted_request_urls": "URL fragments the page may request; overrides the blacklist.",
    "blacklisted_request_urls": "URL fragments the page may not request.",
}


def get_error_hint(error_type: str, field_name: str | None = None) -> str:
    """Get a user-friendly hint for a validation error.

    Args:
        error_type: The pydantic error type (e.g., 'missing', 'int_type').
        field_name: Optional dotted setting location.

    Returns:
        A user-friendly hint string.
    """
    if field_name:
        # 'database.path' -> check 'path' first, then 'database'
        for part in reversed(field_name.split(".")):
            if part in FIELD_HINTS:
                return FIELD_HINTS[part]

    return ERROR_HINTS.get(
        error_type, "Check the configuration documentation for valid values."
    )


def format_validation_error(
    location: str,
    message: str,
    error_type: str,
    *,
    include_hint: bool = True,
) -> str:
    """Format a validation error with optional hint.

    Args:
        location: The error location (e.g., 'database.path').
        message: The original error message.
        error_type: The error type.
        include_hint: Whether to include a hint.

    Returns:
        Formatted error string.
    """
    base = f"{location}: {message}"
    if include_hint:
        hint = get_error_hint(error_type, location)
        return f"{base}\n    Hint: {hint}"
    return base
