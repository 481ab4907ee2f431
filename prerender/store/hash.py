"""Content hashing for snapshot change detection."""

import hashlib


def compute_content_hash(body: str, status: int) -> str:
    """Compute a content hash for a rendered page.

    Two renders of the same page hash equal when they produced the same
    markup and the same status code.

    Args:
        body: Serialized HTML.
        status: Resolved HTTP status.

    Returns:
        First 16 characters of the SHA-256 hash.

    Examples:
        >>> len(compute_content_hash("<html></html>", 200))
        16
    """
    content = f"status:{status}\nbody:{body}"
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:16]
