"""Run and run-agent lifecycle states and the records that carry them."""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

NIL_UUID = UUID(int=0)
ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)


class InvalidRunStatusError(ValueError):
    """Raised for a string that names no run status."""


class InvalidRunAgentStatusError(ValueError):
    """Raised for a string that names no run-agent status."""


class RunStatus(str, enum.Enum):
    """Lifecycle state of a run."""

    DRAFT = "draft"
    QUEUED = "queued"
    PROVISIONING = "provisioning"
    RUNNING = "running"
    SCORING = "scoring"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value

    def can_transition_to(self, next_status) -> bool:
        """Return whether a run may move from this state to ``next_status``."""
        try:
            target = RunStatus(next_status)
        except ValueError:
            return False
        return target in _RUN_TRANSITIONS[self]


class RunAgentStatus(str, enum.Enum):
    """Lifecycle state of one agent lane within a run."""

    QUEUED = "queued"
    READY = "ready"
    EXECUTING = "executing"
    EVALUATING = "evaluating"
    COMPLETED = "completed"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value

    def can_transition_to(self, next_status) -> bool:
        """Return whether a run agent may move from this state to ``next_status``."""
        try:
            target = RunAgentStatus(next_status)
        except ValueError:
            return False
        return target in _RUN_AGENT_TRANSITIONS[self]


_RUN_TRANSITIONS: dict[RunStatus, frozenset[RunStatus]] = {
    RunStatus.DRAFT: frozenset({RunStatus.QUEUED}),
    RunStatus.QUEUED: frozenset(
        {RunStatus.PROVISIONING, RunStatus.FAILED, RunStatus.CANCELLED}
    ),
    RunStatus.PROVISIONING: frozenset(
        {RunStatus.RUNNING, RunStatus.FAILED, RunStatus.CANCELLED}
    ),
    RunStatus.RUNNING: frozenset(
        {RunStatus.SCORING, RunStatus.FAILED, RunStatus.CANCELLED}
    ),
    RunStatus.SCORING: frozenset(
        {RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.CANCELLED}
    ),
    RunStatus.COMPLETED: frozenset(),
    RunStatus.FAILED: frozenset(),
    RunStatus.CANCELLED: frozenset(),
}

_RUN_AGENT_TRANSITIONS: dict[RunAgentStatus, frozenset[RunAgentStatus]] = {
    RunAgentStatus.QUEUED: frozenset({RunAgentStatus.READY, RunAgentStatus.FAILED}),
    RunAgentStatus.READY: frozenset({RunAgentStatus.EXECUTING, RunAgentStatus.FAILED}),
    RunAgentStatus.EXECUTING: frozenset(
        {RunAgentStatus.EVALUATING, RunAgentStatus.FAILED}
    ),
    RunAgentStatus.EVALUATING: frozenset(
        {RunAgentStatus.COMPLETED, RunAgentStatus.FAILED}
    ),
    RunAgentStatus.COMPLETED: frozenset(),
    RunAgentStatus.FAILED: frozenset(),
}


def parse_run_status(raw) -> RunStatus:
    """Parse ``raw`` into a :class:`RunStatus`."""
    try:
        return RunStatus(raw)
    except ValueError:
        raise InvalidRunStatusError(
            f"invalid run status: {json.dumps(str(raw))}"
        ) from None


def parse_run_agent_status(raw) -> RunAgentStatus:
    """Parse ``raw`` into a :class:`RunAgentStatus`."""
    try:
        return RunAgentStatus(raw)
    except ValueError:
        raise InvalidRunAgentStatusError(
            f"invalid run agent status: {json.dumps(str(raw))}"
        ) from None


@dataclass
class Run:
    """A benchmark run comparing one or more agent deployments."""

    id: UUID = NIL_UUID
    organization_id: UUID = NIL_UUID
    workspace_id: UUID = NIL_UUID
    challenge_pack_version_id: UUID = NIL_UUID
    challenge_input_set_id: UUID | None = None
    created_by_user_id: UUID | None = None
    name: str = ""
    status: RunStatus = RunStatus.DRAFT
    execution_mode: str = ""
    temporal_workflow_id: str | None = None
    temporal_run_id: str | None = None
    execution_plan: bytes | None = None
    queued_at: datetime | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    cancelled_at: datetime | None = None
    failed_at: datetime | None = None
    created_at: datetime = ZERO_TIME
    updated_at: datetime = ZERO_TIME


@dataclass
class RunAgent:
    """One agent deployment's lane within a run."""

    id: UUID = NIL_UUID
    organization_id: UUID = NIL_UUID
    workspace_id: UUID = NIL_UUID
    run_id: UUID = NIL_UUID
    agent_deployment_id: UUID = NIL_UUID
    agent_deployment_snapshot_id: UUID = NIL_UUID
    lane_index: int = 0
    label: str = ""
    status: RunAgentStatus = RunAgentStatus.QUEUED
    queued_at: datetime | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    failure_reason: str | None = None
    created_at: datetime = ZERO_TIME
    updated_at: datetime = ZERO_TIME


@dataclass
class RunStatusHistory:
    """A recorded change of a run's status."""

    id: UUID = NIL_UUID
    run_id: UUID = NIL_UUID
    from_status: RunStatus | None = None
    to_status: RunStatus = RunStatus.DRAFT
    reason: str | None = None
    changed_by_user_id: UUID | None = None
    changed_at: datetime = ZERO_TIME


@dataclass
class RunAgentStatusHistory:
    """A recorded change of a run agent's status."""

    id: UUID = NIL_UUID
    run_agent_id: UUID = NIL_UUID
    from_status: RunAgentStatus | None = None
    to_status: RunAgentStatus = RunAgentStatus.QUEUED
    reason: str | None = None
    changed_at: datetime = ZERO_TIME