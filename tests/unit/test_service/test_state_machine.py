"""Unit tests for the service lifecycle state machine."""

import pytest

from prerender.service.state_machine import (
    ServiceState,
    ServiceStateError,
    ServiceStateMachine,
)


class TestServiceStateMachine:
    """Tests for ServiceStateMachine."""

    @pytest.mark.unit
    def test_initial_state(self) -> None:
        """Test the machine starts stopped."""
        machine = ServiceStateMachine()
        assert machine.state == ServiceState.STOPPED
        assert not machine.is_running()

    @pytest.mark.unit
    def test_full_lifecycle(self) -> None:
        """Test the happy path through every state."""
        machine = ServiceStateMachine()

        machine.transition(ServiceState.STARTING)
        machine.transition(ServiceState.RUNNING)
        assert machine.is_running()
        machine.transition(ServiceState.STOPPING)
        machine.transition(ServiceState.STOPPED)

        assert machine.state == ServiceState.STOPPED

    @pytest.mark.unit
    def test_failed_start_can_retry(self) -> None:
        """Test a failed start may be retried."""
        machine = ServiceStateMachine()
        machine.transition(ServiceState.STARTING)
        machine.transition(ServiceState.FAILED)

        assert machine.can_transition(ServiceState.STARTING)
        assert machine.can_transition(ServiceState.STOPPING)

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "target", [ServiceState.RUNNING, ServiceState.STOPPING, ServiceState.FAILED]
    )
    def test_invalid_from_stopped(self, target: ServiceState) -> None:
        """Test a stopped service can only start."""
        machine = ServiceStateMachine()

        with pytest.raises(ServiceStateError) as exc_info:
            machine.transition(target)

        assert exc_info.value.from_state == ServiceState.STOPPED
        assert exc_info.value.to_state == target
        assert machine.state == ServiceState.STOPPED

    @pytest.mark.unit
    def test_running_cannot_restart(self) -> None:
        """Test a running service cannot start again."""
        machine = ServiceStateMachine()
        machine.transition(ServiceState.STARTING)
        machine.transition(ServiceState.RUNNING)

        with pytest.raises(ServiceStateError, match="RUNNING -> STARTING"):
            machine.transition(ServiceState.STARTING)
