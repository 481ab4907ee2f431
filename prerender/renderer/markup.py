"""Post-processing of rendered markup."""

from bs4 import BeautifulSoup


# Scripts with no type or a JavaScript type, plus HTML imports
STRIP_SELECTOR = 'script:not([type]), script[type*="javascript"], link[rel="import"]'

STATUS_OVERRIDE_SELECTOR = 'meta[name="render:status_code"]'

STATUS_NO_RESPONSE = 400
STATUS_FORBIDDEN = 403
METADATA_FLAVOR_HEADER = "metadata-flavor"
METADATA_FLAVOR_GOOGLE = "Google"


def parse_html(html: str) -> BeautifulSoup:
    """Parse serialized page content."""
    return BeautifulSoup(html, "lxml")


def find_status_override(soup: BeautifulSoup) -> int | None:
    """Read the status code a page requests for itself.

    Pages declare it with ``<meta name="render:status_code" content="404">``.
    Only the leading integer of the content counts; zero, negative or
    non-numeric values are ignored.

    Args:
        soup: Parsed page.

    Returns:
        The requested status, or None.
    """
    element = soup.select_one(STATUS_OVERRIDE_SELECTOR)
    if element is None:
        return None

    content = str(element.get("content") or "").strip()
    digits = ""
    for char in content:
        if not char.isdigit():
            break
        digits += char

    if not digits or int(digits) <= 0:
        return None
    return int(digits)


def strip_markup(soup: BeautifulSoup) -> int:
    """Remove executable scripts and HTML imports in place.

    Scripts with a non-JavaScript type (JSON-LD, templates) are kept.

    Args:
        soup: Parsed page.

    Returns:
        Number of elements removed.
    """
    removed = soup.select(STRIP_SELECTOR)
    for element in removed:
        element.decompose()
    return len(removed)


def is_metadata_response(headers: dict[str, str]) -> bool:
    """Whether a response came from a cloud compute metadata server."""
    return headers.get(METADATA_FLAVOR_HEADER) == METADATA_FLAVOR_GOOGLE


def resolve_status(
    response_status: int | None,
    response_headers: dict[str, str],
    soup: BeautifulSoup | None = None,
) -> int:
    """Resolve the status to send for a rendered page.

    Args:
        response_status: Status of the main navigation response, None when
            the navigation produced no response.
        response_headers: Lower-cased headers of that response.
        soup: Parsed page, consulted for a status override.

    Returns:
        400 with no response, 403 for cloud metadata responses, otherwise
        the response status (304 read as 200), replaced by the page's
        override only when that status is 200.
    """
    if response_status is None:
        return STATUS_NO_RESPONSE

    if is_metadata_response(response_headers):
        return STATUS_FORBIDDEN

    status = 200 if response_status == 304 else response_status

    if status == 200 and soup is not None:
        override = find_status_override(soup)
        if override is not None:
            status = override

    return status
