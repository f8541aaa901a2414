"""Pure calculators: penalties, wages and distances."""

from shift_engine.calculators.cancellation_policy import (
    NO_SHOW_RULE,
    PENALTY_RULES,
    PENALTY_TABLE_VERSION,
    PenaltyAssessment,
    PenaltyRule,
    penalty_for,
    penalty_table,
)
from shift_engine.calculators.geo import haversine_meters, validate_coordinates, within_radius
from shift_engine.calculators.wage_calculator import (
    ShiftWage,
    calculate_shift_wage,
    earned_amount,
    shift_duration_hours,
)

__all__ = [
    "NO_SHOW_RULE",
    "PENALTY_RULES",
    "PENALTY_TABLE_VERSION",
    "PenaltyAssessment",
    "PenaltyRule",
    "penalty_for",
    "penalty_table",
    "haversine_meters",
    "validate_coordinates",
    "within_radius",
    "ShiftWage",
    "calculate_shift_wage",
    "earned_amount",
    "shift_duration_hours",
]
