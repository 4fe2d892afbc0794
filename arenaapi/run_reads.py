"""Reading runs and their agent lanes on behalf of an authorized caller."""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from arenaapi.auth import Caller
from arenaapi.domain import Run, RunAgent


@dataclass
class GetRunResult:
    """A run the caller is allowed to see."""

    run: Run = field(default_factory=Run)


@dataclass
class ListRunAgentsResult:
    """A run together with its agent lanes."""

    run: Run = field(default_factory=Run)
    run_agents: list[RunAgent] = field(default_factory=list)


class RunReadManager:
    """Loads runs and checks workspace access against the stored run."""

    def __init__(self, authorizer, repo) -> None:
        self.authorizer = authorizer
        self.repo = repo

    def _load_authorized_run(self, caller: Caller, run_id: UUID) -> Run:
        run = self.repo.get_run_by_id(run_id)
        self.authorizer.authorize_workspace(caller, run.workspace_id)
        return run

    def get_run(self, caller: Caller, run_id: UUID) -> GetRunResult:
        """Return the run, raising when it is missing or outside the caller's workspaces."""
        return GetRunResult(run=self._load_authorized_run(caller, run_id))

    def list_run_agents(self, caller: Caller, run_id: UUID) -> ListRunAgentsResult:
        """Return the run and its agent lanes in the repository's order."""
        run = self._load_authorized_run(caller, run_id)
        try:
            run_agents = list(self.repo.list_run_agents_by_run_id(run_id) or [])
        except Exception as exc:
            raise RuntimeError(f"list run agents: {exc}") from exc
        return ListRunAgentsResult(run=run, run_agents=run_agents)


def _without_empty(pairs) -> dict:
    return {key: value for key, value, omit_if_none in pairs if not (omit_if_none and value is None)}


def build_run_links(run_id: UUID) -> dict:
    """Return the API links of a run."""
    return {
        "self": f"/v1/runs/{run_id}",
        "agents": f"/v1/runs/{run_id}/agents",
    }


def build_get_run_response(run: Run) -> dict:
    """Return the response body describing ``run``; unset optional fields are left out."""
    return _without_empty(
        [
            ("id", run.id, False),
            ("workspace_id", run.workspace_id, False),
            ("challenge_pack_version_id", run.challenge_pack_version_id, False),
            ("challenge_input_set_id", run.challenge_input_set_id, True),
            ("name", run.name, False),
            ("status", run.status, False),
            ("execution_mode", run.execution_mode, False),
            ("temporal_workflow_id", run.temporal_workflow_id, True),
            ("temporal_run_id", run.temporal_run_id, True),
            ("queued_at", run.queued_at, True),
            ("started_at", run.started_at, True),
            ("finished_at", run.finished_at, True),
            ("cancelled_at", run.cancelled_at, True),
            ("failed_at", run.failed_at, True),
            ("created_at", run.created_at, False),
            ("updated_at", run.updated_at, False),
            ("links", build_run_links(run.id), False),
        ]
    )


def build_run_agent_response(run_agent: RunAgent) -> dict:
    """Return the response body describing one run agent."""
    return _without_empty(
        [
            ("id", run_agent.id, False),
            ("run_id", run_agent.run_id, False),
            ("lane_index", run_agent.lane_index, False),
            ("label", run_agent.label, False),
            ("agent_deployment_id", run_agent.agent_deployment_id, False),
            ("agent_deployment_snapshot_id", run_agent.agent_deployment_snapshot_id, False),
            ("status", run_agent.status, False),
            ("queued_at", run_agent.queued_at, True),
            ("started_at", run_agent.started_at, True),
            ("finished_at", run_agent.finished_at, True),
            ("failure_reason", run_agent.failure_reason, True),
            ("created_at", run_agent.created_at, False),
            ("updated_at", run_agent.updated_at, False),
        ]
    )