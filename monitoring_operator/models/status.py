"""Pydantic models for MonitoringInstance status."""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Phase(str, Enum):
    """Lifecycle phase of an instance."""

    INITIALIZING = "Initializing"
    PROVISIONING = "Provisioning"
    WAITING = "WaitingForDependencies"
    READY = "Ready"
    DEGRADED = "Degraded"
    TERMINATING = "Terminating"


class Outcome(str, Enum):
    """Result of one reconcile attempt, used to derive the next phase."""

    SUCCESS = "Success"
    WAITING = "Waiting"
    FAILED = "Failed"
    SPEC_INVALID = "SpecInvalid"
    TERMINATING = "Terminating"


_SERVED = (Phase.READY, Phase.DEGRADED)


def next_phase(previous: Optional[Phase], outcome: Outcome) -> Phase:
    """Compute the phase an instance moves to after a reconcile attempt."""
    if outcome == Outcome.TERMINATING:
        return Phase.TERMINATING
    if outcome == Outcome.SUCCESS:
        return Phase.READY
    if previous in _SERVED:
        return Phase.DEGRADED
    if outcome == Outcome.WAITING:
        return Phase.WAITING
    if outcome == Outcome.SPEC_INVALID and previous in (None, Phase.INITIALIZING):
        return Phase.INITIALIZING
    return Phase.PROVISIONING


class Condition(BaseModel):
    """Condition represents one observed aspect of the MonitoringInstance."""

    type: str = Field(..., description="Type of condition")
    status: str = Field(..., description="Status of condition (True/False/Unknown)")
    lastTransitionTime: datetime = Field(..., description="Last time condition transitioned")
    reason: str = Field(..., description="Machine-readable reason for condition")
    message: str = Field("", description="Human-readable message for condition")


class MonitoringInstanceStatus(BaseModel):
    """Status of MonitoringInstance custom resource."""

    phase: Optional[Phase] = None
    conditions: List[Condition] = Field(default_factory=list, description="Current conditions")
    observedGeneration: Optional[int] = None
    hash: Optional[int] = Field(None, description="Hash of the last reconciled spec")
    envName: Optional[str] = None

    @classmethod
    def from_body(cls, body: Dict[str, Any]) -> "MonitoringInstanceStatus":
        return cls.model_validate(body.get('status') or {})

    def get_condition(self, condition_type: str) -> Optional[Condition]:
        for condition in self.conditions:
            if condition.type == condition_type:
                return condition
        return None

    def set_condition(self, condition_type: str, status: bool, reason: str, message: str = "",
                      now: Optional[datetime] = None) -> None:
        """Set a condition, keeping its transition time if the status did not change."""
        value = "True" if status else "False"
        existing = self.get_condition(condition_type)
        if existing is not None and existing.status == value:
            existing.reason = reason
            existing.message = message
            return
        condition = Condition(
            type=condition_type,
            status=value,
            lastTransitionTime=now or datetime.now(timezone.utc),
            reason=reason,
            message=message,
        )
        if existing is None:
            self.conditions.append(condition)
        else:
            self.conditions[self.conditions.index(existing)] = condition

    def remove_condition(self, condition_type: str) -> None:
        self.conditions = [c for c in self.conditions if c.type != condition_type]

    def to_patch(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
