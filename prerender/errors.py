"""Root exception type shared by every prerender component."""


class PrerenderError(Exception):
    """Base exception for all prerender errors.

    Component-level hierarchies (configuration, store, renderer, service)
    inherit from this class so applications can catch every failure raised
    by the package with a single ``except`` clause.
    """
