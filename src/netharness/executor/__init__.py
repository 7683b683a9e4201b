"""Step executor: dependency-ordered, concurrent step scheduling and run reports."""

from .executor import StepExecutor, StepRecord
from .report import FailureKind, NodeOutcome, Report, StepResult
from .states import StepState

__all__ = [
    # Scheduling
    "StepExecutor",
    "StepRecord",
    "StepState",
    # Reports
    "FailureKind",
    "NodeOutcome",
    "Report",
    "StepResult",
]
