"""Tests for the application state machine."""

import pytest

from shift_engine.models import Application, ApplicationStage
from shift_engine.services.errors import InvalidTransitionError
from shift_engine.services.state_machine import ApplicationStateMachine


class TestApplicationStateMachine:
    """Test state machine transitions."""

    def test_valid_transitions(self):
        """Test that valid transitions are allowed."""
        # applied → clocked_in
        assert ApplicationStateMachine.can_transition("applied", "clocked_in") is True

        # standby → activated (promotion)
        assert ApplicationStateMachine.can_transition("standby", "activated") is True

        # activated → clocked_in
        assert ApplicationStateMachine.can_transition("activated", "clocked_in") is True

        # clocked_in → clocked_out → completed
        assert ApplicationStateMachine.can_transition("clocked_in", "clocked_out") is True
        assert ApplicationStateMachine.can_transition("clocked_out", "completed") is True

        # Cancellation is allowed from every live stage
        for stage in ("applied", "standby", "activated", "clocked_in", "clocked_out"):
            assert ApplicationStateMachine.can_transition(stage, "cancelled") is True

    def test_invalid_transitions(self):
        """Test that invalid transitions are blocked."""
        # Standby cannot clock in before activation
        assert ApplicationStateMachine.can_transition("standby", "clocked_in") is False

        # Can't skip clock-out
        assert ApplicationStateMachine.can_transition("clocked_in", "completed") is False

        # No-show only before clock-in
        assert ApplicationStateMachine.can_transition("clocked_in", "no_show") is False
        assert ApplicationStateMachine.can_transition("standby", "no_show") is False

        # Terminal stages have no exits
        assert ApplicationStateMachine.can_transition("cancelled", "applied") is False
        assert ApplicationStateMachine.can_transition("completed", "cancelled") is False
        assert ApplicationStateMachine.can_transition("no_show", "clocked_in") is False

    def test_validate_transition_raises(self):
        """Test that validate_transition raises for invalid transitions."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            ApplicationStateMachine.validate_transition("applied", "completed")

        assert exc_info.value.from_stage == "applied"
        assert exc_info.value.to_stage == "completed"
        assert exc_info.value.code == "INVALID_TRANSITION"

    def test_is_terminal(self):
        assert ApplicationStateMachine.is_terminal("completed") is True
        assert ApplicationStateMachine.is_terminal("cancelled") is True
        assert ApplicationStateMachine.is_terminal("no_show") is True
        assert ApplicationStateMachine.is_terminal("applied") is False
        assert ApplicationStateMachine.is_terminal("standby") is False

    def test_get_next_stages(self):
        assert ApplicationStateMachine.get_next_stages("standby") == [
            ApplicationStage.ACTIVATED,
            ApplicationStage.CANCELLED,
        ]
        assert ApplicationStateMachine.get_next_stages("no_show") == []

    def test_unknown_stage_rejected(self):
        with pytest.raises(ValueError):
            ApplicationStateMachine.can_transition("paid", "cancelled")


class TestDerivedStage:
    """The stage is derived from persisted fields."""

    def _application(self, **fields) -> Application:
        defaults = {
            "status": "upcoming",
            "is_standby": False,
            "activated_at": None,
            "clock_in_time": None,
            "clock_out_time": None,
        }
        defaults.update(fields)
        return Application(**defaults)

    def test_fresh_primary_booking_is_applied(self):
        assert self._application().stage == ApplicationStage.APPLIED

    def test_waiting_standby(self):
        assert self._application(is_standby=True).stage == ApplicationStage.STANDBY

    def test_promoted_standby_is_activated(self, clock):
        application = self._application(activated_at=clock())
        assert application.stage == ApplicationStage.ACTIVATED

    def test_clock_stamps(self, clock):
        assert self._application(clock_in_time=clock()).stage == ApplicationStage.CLOCKED_IN
        assert (
            self._application(clock_in_time=clock(), clock_out_time=clock()).stage
            == ApplicationStage.CLOCKED_OUT
        )

    def test_status_wins_over_stamps(self, clock):
        application = self._application(status="cancelled", clock_in_time=clock())
        assert application.stage == ApplicationStage.CANCELLED
        assert application.is_terminal is True

    def test_transition_returns_previous_stage(self):
        application = self._application(is_standby=True)
        assert (
            ApplicationStateMachine.transition(application, ApplicationStage.ACTIVATED)
            == ApplicationStage.STANDBY
        )

        with pytest.raises(InvalidTransitionError):
            ApplicationStateMachine.transition(application, ApplicationStage.CLOCKED_IN)
