"""Eligibility classification of inbound requests."""

from dataclasses import dataclass
from enum import Enum

import structlog

from prerender.config.constants import COMPONENT_REQUEST
from prerender.config.models import PrerenderConfig
from prerender.request.metrics import ClassifierMetrics
from prerender.request.models import InboundRequest


logger = structlog.get_logger()


class RejectReason(str, Enum):
    """Why a request was not eligible for prerendering."""

    NO_REQUEST = "no-request"
    REJECTED_REQUEST = "rejected-request"
    REJECTED_METHOD = "rejected-method"
    NO_USER_AGENT = "no-user-agent"
    REJECTED_USER_AGENT = "rejected-user-agent"
    REJECTED_EXTENSION = "rejected-extension"
    REJECTED_PATH = "rejected-path"


@dataclass(frozen=True)
class Eligibility:
    """Outcome of classifying a request.

    Attributes:
        accepted: Whether the request should be prerendered.
        reason: Rejection reason, None when accepted.
    """

    accepted: bool
    reason: RejectReason | None = None

    def __bool__(self) -> bool:
        return self.accepted

    @classmethod
    def accept(cls) -> "Eligibility":
        """Build an accepting result."""
        return cls(accepted=True)

    @classmethod
    def reject(cls, reason: RejectReason) -> "Eligibility":
        """Build a rejecting result.

        Args:
            reason: Why the request was rejected.
        """
        return cls(accepted=False, reason=reason)


def classify(request: object, config: PrerenderConfig) -> Eligibility:
    """Decide whether a request should be prerendered.

    Checks run in a fixed order and the first failing check determines
    the reason:

    1. request present
    2. request is an InboundRequest
    3. method is exactly ``GET``
    4. User-Agent present
    5. lower-cased User-Agent is a known bot
    6. path extension is prerenderable
    7. path (without leading slash) matches a configured pattern

    Args:
        request: Candidate request.
        config: Prerender configuration.

    Returns:
        Eligibility decision.
    """
    if request is None:
        return Eligibility.reject(RejectReason.NO_REQUEST)

    if not isinstance(request, InboundRequest):
        return Eligibility.reject(RejectReason.REJECTED_REQUEST)

    if request.method != "GET":
        return Eligibility.reject(RejectReason.REJECTED_METHOD)

    user_agent = request.user_agent
    if not user_agent:
        return Eligibility.reject(RejectReason.NO_USER_AGENT)

    if user_agent.lower() not in config.bot_user_agents:
        return Eligibility.reject(RejectReason.REJECTED_USER_AGENT)

    if request.extension not in config.prerenderable_extensions:
        return Eligibility.reject(RejectReason.REJECTED_EXTENSION)

    path = request.path[1:] if request.path.startswith("/") else request.path
    if not any(pattern.search(path) for pattern in config.path_regexps):
        return Eligibility.reject(RejectReason.REJECTED_PATH)

    return Eligibility.accept()


class EligibilityClassifier:
    """Classifier bound to a configuration, with metrics and logging."""

    def __init__(
        self,
        config: PrerenderConfig,
        metrics: ClassifierMetrics | None = None,
    ) -> None:
        """Initialize the classifier.

        Args:
            config: Prerender configuration.
            metrics: Metrics sink; the shared instance if omitted.
        """
        self._config = config
        self._metrics = metrics or ClassifierMetrics.get_instance()
        self._log = logger.bind(component=COMPONENT_REQUEST)

    @property
    def metrics(self) -> ClassifierMetrics:
        """Get the metrics sink."""
        return self._metrics

    def classify(self, request: object) -> Eligibility:
        """Classify a request and record the decision.

        Args:
            request: Candidate request.

        Returns:
            Eligibility decision.
        """
        result = classify(request, self._config)

        if result.reason is None:
            self._metrics.record_accepted()
        else:
            self._metrics.record_rejected(result.reason.value)

        if isinstance(request, InboundRequest):
            self._log.debug(
                "request_classified",
                method=request.method,
                url=request.url,
                accepted=result.accepted,
                reason=result.reason.value if result.reason else None,
            )
        return result
