"""Creation of queued runs and the start of their workflows."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable
from uuid import UUID

from arenaapi.auth import Caller
from arenaapi.domain import NIL_UUID, Run
from arenaapi.records import (
    ChallengeInputSetNotFoundError,
    ChallengePackVersionNotFoundError,
    CreateQueuedRunAgentParams,
    CreateQueuedRunParams,
)


@dataclass
class CreateRunInput:
    """Validated input for creating a run."""

    workspace_id: UUID = NIL_UUID
    challenge_pack_version_id: UUID = NIL_UUID
    challenge_input_set_id: UUID | None = None
    name: str = ""
    agent_deployment_ids: list[UUID] = field(default_factory=list)


@dataclass
class CreateRunResult:
    """The run that was created and queued."""

    run: Run = field(default_factory=Run)


class RunCreationValidationError(ValueError):
    """The request to create a run is invalid; ``code`` is the API error code."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return self.message


class RunWorkflowStartError(RuntimeError):
    """The run was persisted but its workflow could not be started."""

    def __init__(self, run: Run, cause: BaseException) -> None:
        super().__init__(f"start run workflow for run {run.id}: {cause}")
        self.run = run
        self.cause = cause


_INVALID_DEPLOYMENTS_MESSAGE = (
    "agent_deployment_ids must reference active deployments with a snapshot "
    "in the selected workspace"
)


def _invalid_deployments(message: str) -> RunCreationValidationError:
    return RunCreationValidationError("invalid_agent_deployment_ids", message)


class RunCreationManager:
    """Validates run requests, persists queued runs and starts their workflows."""

    def __init__(
        self,
        authorizer,
        repo,
        workflow_starter,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.authorizer = authorizer
        self.repo = repo
        self.workflow_starter = workflow_starter
        self.now = now or (lambda: datetime.now(timezone.utc))

    def create_run(self, caller: Caller, run_input: CreateRunInput) -> CreateRunResult:
        """Create a queued run for ``run_input`` and start its workflow."""
        self.authorizer.authorize_workspace(caller, run_input.workspace_id)

        deployment_ids = list(run_input.agent_deployment_ids or [])
        if not deployment_ids:
            raise _invalid_deployments("at least one agent deployment id is required")
        if len(set(deployment_ids)) != len(deployment_ids):
            raise _invalid_deployments("agent_deployment_ids must not contain duplicates")

        try:
            self.repo.get_runnable_challenge_pack_version_by_id(
                run_input.challenge_pack_version_id
            )
        except ChallengePackVersionNotFoundError:
            raise RunCreationValidationError(
                "invalid_challenge_pack_version_id",
                "challenge_pack_version_id must reference a runnable challenge pack version",
            ) from None
        except Exception as exc:
            raise RuntimeError(f"load runnable challenge pack version: {exc}") from exc

        if run_input.challenge_input_set_id is not None:
            try:
                input_set = self.repo.get_challenge_input_set_by_id(
                    run_input.challenge_input_set_id
                )
            except ChallengeInputSetNotFoundError:
                raise RunCreationValidationError(
                    "invalid_challenge_input_set_id",
                    "challenge_input_set_id must reference an active challenge input set",
                ) from None
            except Exception as exc:
                raise RuntimeError(f"load challenge input set: {exc}") from exc
            if input_set.challenge_pack_version_id != run_input.challenge_pack_version_id:
                raise RunCreationValidationError(
                    "invalid_challenge_input_set_id",
                    "challenge_input_set_id must belong to the selected challenge pack version",
                )

        try:
            deployments = list(
                self.repo.list_runnable_deployments_with_latest_snapshot(
                    run_input.workspace_id, deployment_ids
                )
                or []
            )
        except Exception as exc:
            raise RuntimeError(f"list runnable deployments: {exc}") from exc
        if len(deployments) != len(deployment_ids):
            raise _invalid_deployments(_INVALID_DEPLOYMENTS_MESSAGE)

        deployment_by_id = {deployment.id: deployment for deployment in deployments}
        organization_id = deployments[0].organization_id
        if any(d.organization_id != organization_id for d in deployments[1:]):
            raise RuntimeError(
                f"deployments in workspace {run_input.workspace_id} "
                "resolved to multiple organizations"
            )

        run_agents: list[CreateQueuedRunAgentParams] = []
        for lane_index, deployment_id in enumerate(deployment_ids):
            deployment = deployment_by_id.get(deployment_id)
            if deployment is None:
                raise _invalid_deployments(_INVALID_DEPLOYMENTS_MESSAGE)
            run_agents.append(
                CreateQueuedRunAgentParams(
                    agent_deployment_id=deployment.id,
                    agent_deployment_snapshot_id=deployment.agent_deployment_snapshot_id,
                    lane_index=lane_index,
                    label=deployment.name,
                )
            )

        run_name = run_input.name or default_run_name(
            self.now().astimezone(timezone.utc)
        )
        execution_mode = "single_agent" if len(run_agents) == 1 else "comparison"
        execution_plan = build_execution_plan(run_input, run_agents)

        try:
            result = self.repo.create_queued_run(
                CreateQueuedRunParams(
                    organization_id=organization_id,
                    workspace_id=run_input.workspace_id,
                    challenge_pack_version_id=run_input.challenge_pack_version_id,
                    challenge_input_set_id=run_input.challenge_input_set_id,
                    created_by_user_id=caller.user_id,
                    name=run_name,
                    execution_mode=execution_mode,
                    execution_plan=execution_plan,
                    run_agents=run_agents,
                )
            )
        except Exception as exc:
            raise RuntimeError(f"create queued run: {exc}") from exc

        try:
            self.workflow_starter.start_run_workflow(result.run.id)
        except Exception as exc:
            raise RunWorkflowStartError(result.run, exc) from exc

        return CreateRunResult(run=result.run)


def build_execution_plan(run_input: CreateRunInput, run_agents) -> bytes:
    """Encode the execution plan of a run as compact JSON bytes."""
    plan: dict = {
        "workspace_id": str(run_input.workspace_id),
        "challenge_pack_version_id": str(run_input.challenge_pack_version_id),
    }
    if run_input.challenge_input_set_id is not None:
        plan["challenge_input_set_id"] = str(run_input.challenge_input_set_id)
    plan["participants"] = [
        {
            "lane_index": agent.lane_index,
            "agent_deployment_id": str(agent.agent_deployment_id),
            "agent_deployment_snapshot_id": str(agent.agent_deployment_snapshot_id),
            "label": agent.label,
        }
        for agent in run_agents
    ]
    return json.dumps(plan, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def default_run_name(now: datetime) -> str:
    """Name a run after its creation time in RFC 3339 form."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    text = now.strftime("%Y-%m-%dT%H:%M:%S")
    offset = now.utcoffset()
    seconds = int(offset.total_seconds()) if offset else 0
    if seconds == 0:
        return f"Run {text}Z"
    sign = "+" if seconds > 0 else "-"
    hours, minutes = divmod(abs(seconds) // 60, 60)
    return f"Run {text}{sign}{hours:02d}:{minutes:02d}"