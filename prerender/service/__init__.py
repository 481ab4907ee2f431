"""Orchestration of classification, lookup, rendering and persistence."""

from prerender.service.errors import ServiceError, ServiceNotReadyError
from prerender.service.inflight import InflightRenders
from prerender.service.metrics import ServiceMetrics
from prerender.service.service import PrerenderService
from prerender.service.state_machine import (
    ServiceState,
    ServiceStateError,
    ServiceStateMachine,
)


__all__ = [
    "InflightRenders",
    "PrerenderService",
    "ServiceError",
    "ServiceMetrics",
    "ServiceNotReadyError",
    "ServiceState",
    "ServiceStateError",
    "ServiceStateMachine",
]
