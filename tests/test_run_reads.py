from datetime import datetime, timezone
from uuid import uuid4

import pytest

from arenaapi.auth import Caller, CallerWorkspaceAuthorizer, ForbiddenError, WorkspaceMembership
from arenaapi.domain import Run, RunAgent, RunAgentStatus, RunStatus
from arenaapi.records import RunNotFoundError
from arenaapi.respond import to_jsonable
from arenaapi.run_reads import (
    GetRunResult,
    ListRunAgentsResult,
    RunReadManager,
    build_get_run_response,
    build_run_agent_response,
    build_run_links,
)


class FakeRunReadRepository:
    def __init__(self, run=None, run_agents=None, get_run_error=None, list_error=None):
        self.run = run or Run()
        self.run_agents = run_agents or []
        self.get_run_error = get_run_error
        self.list_error = list_error

    def get_run_by_id(self, run_id):
        if self.get_run_error:
            raise self.get_run_error
        return self.run

    def list_run_agents_by_run_id(self, run_id):
        if self.list_error:
            raise self.list_error
        return self.run_agents


def member_of(workspace_id):
    return Caller(
        user_id=uuid4(),
        workspace_memberships={
            workspace_id: WorkspaceMembership(workspace_id=workspace_id, role="workspace_member")
        },
    )


def test_get_run_for_authorized_caller():
    workspace_id = uuid4()
    run_id = uuid4()
    manager = RunReadManager(
        CallerWorkspaceAuthorizer(),
        FakeRunReadRepository(run=Run(id=run_id, workspace_id=workspace_id)),
    )
    result = manager.get_run(member_of(workspace_id), run_id)
    assert isinstance(result, GetRunResult)
    assert result.run.id == run_id


def test_get_run_not_found():
    manager = RunReadManager(
        CallerWorkspaceAuthorizer(), FakeRunReadRepository(get_run_error=RunNotFoundError())
    )
    with pytest.raises(RunNotFoundError):
        manager.get_run(Caller(user_id=uuid4()), uuid4())


def test_get_run_forbidden_workspace():
    manager = RunReadManager(
        CallerWorkspaceAuthorizer(),
        FakeRunReadRepository(run=Run(id=uuid4(), workspace_id=uuid4())),
    )
    with pytest.raises(ForbiddenError):
        manager.get_run(Caller(user_id=uuid4(), workspace_memberships={}), uuid4())


def test_list_run_agents_wraps_repository_error():
    workspace_id = uuid4()
    manager = RunReadManager(
        CallerWorkspaceAuthorizer(),
        FakeRunReadRepository(
            run=Run(id=uuid4(), workspace_id=workspace_id),
            list_error=RuntimeError("database unavailable"),
        ),
    )
    with pytest.raises(RuntimeError) as excinfo:
        manager.list_run_agents(member_of(workspace_id), uuid4())
    assert str(excinfo.value) == "list run agents: database unavailable"


def test_list_run_agents_keeps_order():
    workspace_id = uuid4()
    run_id = uuid4()
    first = RunAgent(id=uuid4(), run_id=run_id, lane_index=0, label="Alpha")
    second = RunAgent(id=uuid4(), run_id=run_id, lane_index=1, label="Beta")
    manager = RunReadManager(
        CallerWorkspaceAuthorizer(),
        FakeRunReadRepository(
            run=Run(id=run_id, workspace_id=workspace_id), run_agents=[first, second]
        ),
    )
    result = manager.list_run_agents(member_of(workspace_id), run_id)
    assert isinstance(result, ListRunAgentsResult)
    assert [agent.id for agent in result.run_agents] == [first.id, second.id]
    assert result.run.id == run_id


def test_list_run_agents_forbidden():
    manager = RunReadManager(
        CallerWorkspaceAuthorizer(),
        FakeRunReadRepository(run=Run(id=uuid4(), workspace_id=uuid4())),
    )
    with pytest.raises(ForbiddenError):
        manager.list_run_agents(member_of(uuid4()), uuid4())


def test_build_run_links():
    run_id = uuid4()
    assert build_run_links(run_id) == {
        "self": f"/v1/runs/{run_id}",
        "agents": f"/v1/runs/{run_id}/agents",
    }


def test_get_run_response_includes_set_fields():
    run_id = uuid4()
    workspace_id = uuid4()
    workflow_id = f"RunWorkflow/{run_id}"
    run = Run(
        id=run_id,
        workspace_id=workspace_id,
        name="Run 2026-03-13T12:00:00Z",
        status=RunStatus.QUEUED,
        execution_mode="comparison",
        temporal_workflow_id=workflow_id,
        temporal_run_id="temporal-run-id",
        created_at=datetime(2026, 3, 13, 12, 0, tzinfo=timezone.utc),
        updated_at=datetime(2026, 3, 13, 12, 1, tzinfo=timezone.utc),
    )
    body = to_jsonable(build_get_run_response(run))
    assert body["id"] == str(run_id)
    assert body["temporal_workflow_id"] == workflow_id
    assert body["temporal_run_id"] == "temporal-run-id"
    assert body["status"] == "queued"
    assert body["created_at"] == "2026-03-13T12:00:00Z"
    assert body["updated_at"] == "2026-03-13T12:01:00Z"
    assert body["links"]["self"] == f"/v1/runs/{run_id}"


def test_get_run_response_omits_unset_optionals():
    body = build_get_run_response(Run(id=uuid4()))
    for key in (
        "challenge_input_set_id",
        "temporal_workflow_id",
        "temporal_run_id",
        "queued_at",
        "started_at",
        "finished_at",
        "cancelled_at",
        "failed_at",
    ):
        assert key not in body
    assert body["name"] == ""


def test_run_agent_response():
    agent = RunAgent(
        id=uuid4(),
        run_id=uuid4(),
        lane_index=1,
        label="Beta",
        status=RunAgentStatus.QUEUED,
        failure_reason="timeout",
    )
    body = to_jsonable(build_run_agent_response(agent))
    assert body["id"] == str(agent.id)
    assert body["lane_index"] == 1
    assert body["label"] == "Beta"
    assert body["status"] == "queued"
    assert body["failure_reason"] == "timeout"
    assert "queued_at" not in body