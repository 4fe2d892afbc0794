"""Persisted records and lookup errors shared by the API services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from arenaapi.domain import NIL_UUID, ZERO_TIME, Run


class NotFoundError(LookupError):
    """A requested record does not exist."""

    message = "not found"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class RunNotFoundError(NotFoundError):
    message = "run not found"


class RunAgentNotFoundError(NotFoundError):
    message = "run agent not found"


class RunAgentReplayNotFoundError(NotFoundError):
    message = "replay not found"


class RunAgentScorecardNotFoundError(NotFoundError):
    message = "scorecard not found"


class ChallengePackVersionNotFoundError(NotFoundError):
    message = "challenge pack version not found"


class ChallengeInputSetNotFoundError(NotFoundError):
    message = "challenge input set not found"


@dataclass
class RunnableChallengePackVersion:
    """A challenge pack version that runs may be created against."""

    id: UUID = NIL_UUID


@dataclass
class ChallengeInputSet:
    """An input set belonging to a challenge pack version."""

    id: UUID = NIL_UUID
    challenge_pack_version_id: UUID = NIL_UUID


@dataclass
class RunnableDeployment:
    """An active agent deployment together with its latest snapshot."""

    id: UUID = NIL_UUID
    organization_id: UUID = NIL_UUID
    workspace_id: UUID = NIL_UUID
    name: str = ""
    agent_deployment_snapshot_id: UUID = NIL_UUID


@dataclass
class CreateQueuedRunAgentParams:
    """One lane of a run that is about to be queued."""

    agent_deployment_id: UUID = NIL_UUID
    agent_deployment_snapshot_id: UUID = NIL_UUID
    lane_index: int = 0
    label: str = ""


@dataclass
class CreateQueuedRunParams:
    """Everything needed to persist a queued run."""

    organization_id: UUID = NIL_UUID
    workspace_id: UUID = NIL_UUID
    challenge_pack_version_id: UUID = NIL_UUID
    challenge_input_set_id: UUID | None = None
    created_by_user_id: UUID | None = None
    name: str = ""
    execution_mode: str = ""
    execution_plan: bytes | None = None
    run_agents: list[CreateQueuedRunAgentParams] = field(default_factory=list)


@dataclass
class CreateQueuedRunResult:
    """The run persisted by a queued-run creation."""

    run: Run = field(default_factory=Run)


@dataclass
class RunAgentReplay:
    """Replay summary for one run agent; ``summary`` holds raw JSON."""

    id: UUID = NIL_UUID
    run_agent_id: UUID = NIL_UUID
    artifact_id: UUID | None = None
    summary: bytes | None = None
    latest_sequence_number: int | None = None
    event_count: int = 0
    created_at: datetime = ZERO_TIME
    updated_at: datetime = ZERO_TIME


@dataclass
class RunAgentScorecard:
    """Scores for one run agent; ``scorecard`` holds raw JSON."""

    id: UUID = NIL_UUID
    run_agent_id: UUID = NIL_UUID
    evaluation_spec_id: UUID = NIL_UUID
    overall_score: float | None = None
    correctness_score: float | None = None
    reliability_score: float | None = None
    latency_score: float | None = None
    cost_score: float | None = None
    scorecard: bytes | None = None
    created_at: datetime = ZERO_TIME
    updated_at: datetime = ZERO_TIME