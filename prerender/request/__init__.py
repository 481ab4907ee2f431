"""Inbound request handling: URL resolution and eligibility."""

from prerender.request.classifier import (
    Eligibility,
    EligibilityClassifier,
    RejectReason,
    classify,
)
from prerender.request.metrics import ClassifierMetrics
from prerender.request.models import InboundRequest
from prerender.request.url import (
    DEFAULT_PORTS,
    LEGACY_OMITTED_PORT,
    canonicalize_url,
    omits_port,
    parse_request_url,
    resolve_cache_key,
    split_host_header,
)


__all__ = [
    "DEFAULT_PORTS",
    "LEGACY_OMITTED_PORT",
    "ClassifierMetrics",
    "Eligibility",
    "EligibilityClassifier",
    "InboundRequest",
    "RejectReason",
    "canonicalize_url",
    "classify",
    "omits_port",
    "parse_request_url",
    "resolve_cache_key",
    "split_host_header",
]
