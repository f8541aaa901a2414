"""Application lifecycle state machine with transition validation."""

from __future__ import annotations

from typing import TYPE_CHECKING

from shift_engine.models.enums import ApplicationStage
from shift_engine.services.errors import InvalidTransitionError

if TYPE_CHECKING:
    from shift_engine.models import Application


class ApplicationStateMachine:
    """State machine for application stage transitions.

    Allowed transitions:
    - applied → clocked_in | cancelled | no_show
    - standby → activated (promotion) | cancelled
    - activated → clocked_in | cancelled | no_show
    - clocked_in → clocked_out | cancelled
    - clocked_out → completed | cancelled
    - completed, cancelled, no_show are terminal
    """

    VALID_TRANSITIONS: dict[ApplicationStage, list[ApplicationStage]] = {
        ApplicationStage.APPLIED: [
            ApplicationStage.CLOCKED_IN,
            ApplicationStage.CANCELLED,
            ApplicationStage.NO_SHOW,
        ],
        ApplicationStage.STANDBY: [
            ApplicationStage.ACTIVATED,
            ApplicationStage.CANCELLED,
        ],
        ApplicationStage.ACTIVATED: [
            ApplicationStage.CLOCKED_IN,
            ApplicationStage.CANCELLED,
            ApplicationStage.NO_SHOW,
        ],
        ApplicationStage.CLOCKED_IN: [
            ApplicationStage.CLOCKED_OUT,
            ApplicationStage.CANCELLED,
        ],
        ApplicationStage.CLOCKED_OUT: [
            ApplicationStage.COMPLETED,
            ApplicationStage.CANCELLED,
        ],
        ApplicationStage.COMPLETED: [],
        ApplicationStage.CANCELLED: [],
        ApplicationStage.NO_SHOW: [],
    }

    TERMINAL_STAGES = {
        ApplicationStage.COMPLETED,
        ApplicationStage.CANCELLED,
        ApplicationStage.NO_SHOW,
    }

    @classmethod
    def can_transition(cls, from_stage: str, to_stage: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(ApplicationStage(from_stage), [])
        return ApplicationStage(to_stage) in allowed

    @classmethod
    def validate_transition(cls, from_stage: str, to_stage: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_stage, to_stage):
            raise InvalidTransitionError(
                ApplicationStage(from_stage).value, ApplicationStage(to_stage).value
            )

    @classmethod
    def is_terminal(cls, stage: str) -> bool:
        """Check if no further transitions are possible."""
        return ApplicationStage(stage) in cls.TERMINAL_STAGES

    @classmethod
    def get_next_stages(cls, current_stage: str) -> list[ApplicationStage]:
        """Get list of valid next stages from current stage."""
        return list(cls.VALID_TRANSITIONS.get(ApplicationStage(current_stage), []))

    @classmethod
    def transition(cls, application: Application, to_stage: ApplicationStage) -> ApplicationStage:
        """Validate moving an application to ``to_stage``.

        Returns the stage the application was in. The caller applies the
        field changes that make the derived stage match ``to_stage``.
        """
        from_stage = application.stage
        cls.validate_transition(from_stage, to_stage)
        return from_stage
