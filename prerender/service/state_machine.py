"""Service lifecycle state machine implementation."""

from enum import Enum, auto
from typing import ClassVar

import structlog

from prerender.config.constants import COMPONENT_SERVICE
from prerender.service.errors import ServiceError


logger = structlog.get_logger()


class ServiceState(Enum):
    """Service lifecycle states.

    State transitions:
        STOPPED -> STARTING: Begin connecting dependencies
        STARTING -> RUNNING: Store connected and browser launched
        STARTING -> FAILED: A dependency could not be started
        RUNNING -> STOPPING: Begin releasing dependencies
        STOPPING -> STOPPED: Everything released
        FAILED -> STOPPING: Release whatever did start
        FAILED -> STARTING: Retry startup
    """

    STOPPED = auto()
    STARTING = auto()
    RUNNING = auto()
    STOPPING = auto()
    FAILED = auto()


class ServiceStateError(ServiceError):
    """Raised when an invalid service state transition is attempted."""

    def __init__(self, from_state: ServiceState, to_state: ServiceState) -> None:
        """Initialize the error.

        Args:
            from_state: The current state.
            to_state: The attempted target state.
        """
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid service state transition: {from_state.name} -> {to_state.name}"
        )


class ServiceStateMachine:
    """State machine for the service lifecycle.

    Enforces valid state transitions and logs invariant violations when
    invalid transitions are attempted.
    """

    VALID_TRANSITIONS: ClassVar[dict[ServiceState, set[ServiceState]]] = {
        ServiceState.STOPPED: {ServiceState.STARTING},
        ServiceState.STARTING: {ServiceState.RUNNING, ServiceState.FAILED},
        ServiceState.RUNNING: {ServiceState.STOPPING},
        ServiceState.STOPPING: {ServiceState.STOPPED, ServiceState.FAILED},
        ServiceState.FAILED: {ServiceState.STOPPING, ServiceState.STARTING},
    }

    def __init__(self) -> None:
        """Initialize the state machine in STOPPED state."""
        self._state = ServiceState.STOPPED
        self._log = logger.bind(component=COMPONENT_SERVICE)

    @property
    def state(self) -> ServiceState:
        """Get the current state."""
        return self._state

    def can_transition(self, to_state: ServiceState) -> bool:
        """Check if a transition to the given state is valid.

        Args:
            to_state: The target state.

        Returns:
            True if the transition is valid, False otherwise.
        """
        return to_state in self.VALID_TRANSITIONS.get(self._state, set())

    def transition(self, to_state: ServiceState) -> None:
        """Transition to a new state.

        Args:
            to_state: The target state.

        Raises:
            ServiceStateError: If the transition is invalid.
        """
        if not self.can_transition(to_state):
            self._log.error(
                "invariant_violation",
                error_type="illegal_state_transition",
                from_state=self._state.name,
                to_state=to_state.name,
            )
            raise ServiceStateError(self._state, to_state)

        old_state = self._state
        self._state = to_state
        self._log.info(
            "service_state_transition",
            from_state=old_state.name,
            to_state=to_state.name,
        )

    def is_running(self) -> bool:
        """Check if the service accepts requests."""
        return self._state == ServiceState.RUNNING
