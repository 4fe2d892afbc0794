import uuid

import pytest

from arenaapi.domain import (
    InvalidRunAgentStatusError,
    InvalidRunStatusError,
    Run,
    RunAgent,
    RunAgentStatus,
    RunAgentStatusHistory,
    RunStatus,
    RunStatusHistory,
    parse_run_agent_status,
    parse_run_status,
)

TERMINAL_RUN = ["completed", "failed", "cancelled"]
TERMINAL_AGENT = ["completed", "failed"]
NON_TERMINAL_AGENT = ["queued", "ready", "executing", "evaluating"]


@pytest.mark.parametrize("status", list(RunStatus))
def test_parse_run_status_round_trips(status):
    assert parse_run_status(status.value) is status


@pytest.mark.parametrize("status", list(RunAgentStatus))
def test_parse_run_agent_status_round_trips(status):
    assert parse_run_agent_status(status.value) is status


def test_parse_run_status_pins_queued():
    assert parse_run_status("queued") == RunStatus.QUEUED


@pytest.mark.parametrize("raw", ["", "QUEUED", "unknown"])
def test_parse_run_status_rejects_unknown(raw):
    with pytest.raises(InvalidRunStatusError) as info:
        parse_run_status(raw)
    assert "invalid run status" in str(info.value)


@pytest.mark.parametrize("raw", ["", "draft", "scoring"])
def test_parse_run_agent_status_rejects_unknown(raw):
    with pytest.raises(InvalidRunAgentStatusError) as info:
        parse_run_agent_status(raw)
    assert "invalid run agent status" in str(info.value)


def test_run_transitions_follow_lifecycle():
    assert RunStatus.DRAFT.can_transition_to(RunStatus.QUEUED)
    assert RunStatus.QUEUED.can_transition_to(RunStatus.PROVISIONING)
    assert RunStatus.PROVISIONING.can_transition_to(RunStatus.RUNNING)
    assert RunStatus.RUNNING.can_transition_to(RunStatus.SCORING)
    assert RunStatus.SCORING.can_transition_to(RunStatus.COMPLETED)


def test_run_cannot_skip_states():
    assert not RunStatus.QUEUED.can_transition_to(RunStatus.RUNNING)
    assert not RunStatus.DRAFT.can_transition_to(RunStatus.FAILED)
    assert not RunStatus.RUNNING.can_transition_to(RunStatus.COMPLETED)


@pytest.mark.parametrize("raw", TERMINAL_RUN)
def test_terminal_run_states_have_no_exits(raw):
    terminal = parse_run_status(raw)
    exits = [target.value for target in RunStatus if terminal.can_transition_to(target)]
    assert exits == []


def test_active_run_states_can_fail_and_cancel():
    for status in (RunStatus.QUEUED, RunStatus.PROVISIONING, RunStatus.RUNNING, RunStatus.SCORING):
        assert status.can_transition_to(RunStatus.FAILED)
        assert status.can_transition_to(RunStatus.CANCELLED)


def test_transition_accepts_raw_strings_and_rejects_unknown():
    assert RunStatus.DRAFT.can_transition_to("queued")
    assert not RunStatus.DRAFT.can_transition_to("bogus")
    assert RunAgentStatus.QUEUED.can_transition_to("ready")
    assert not RunAgentStatus.QUEUED.can_transition_to("bogus")


def test_run_agent_transitions_follow_lifecycle():
    assert RunAgentStatus.QUEUED.can_transition_to(RunAgentStatus.READY)
    assert RunAgentStatus.READY.can_transition_to(RunAgentStatus.EXECUTING)
    assert RunAgentStatus.EXECUTING.can_transition_to(RunAgentStatus.EVALUATING)
    assert RunAgentStatus.EVALUATING.can_transition_to(RunAgentStatus.COMPLETED)
    assert not RunAgentStatus.QUEUED.can_transition_to(RunAgentStatus.EXECUTING)


@pytest.mark.parametrize("raw", TERMINAL_AGENT)
def test_terminal_run_agent_states_have_no_exits(raw):
    terminal = parse_run_agent_status(raw)
    exits = [target.value for target in RunAgentStatus if terminal.can_transition_to(target)]
    assert exits == []


@pytest.mark.parametrize("raw", NON_TERMINAL_AGENT)
def test_every_non_terminal_agent_state_can_fail(raw):
    status = parse_run_agent_status(raw)
    assert status.can_transition_to("failed") is True


def test_status_str_is_value():
    assert str(parse_run_status("scoring")) == "scoring"
    assert str(parse_run_agent_status("executing")) == "executing"


def test_run_defaults_and_fields():
    run_id = uuid.uuid4()
    run = Run(id=run_id, name="Run 2026-03-13T12:00:00Z")
    assert run.id == run_id
    assert run.name == "Run 2026-03-13T12:00:00Z"
    assert run.challenge_input_set_id is None
    assert run.status == RunStatus.DRAFT


def test_run_agent_defaults_and_fields():
    run_id = uuid.uuid4()
    agent = RunAgent(run_id=run_id, lane_index=1, label="Beta")
    assert agent.run_id == run_id
    assert agent.lane_index == 1
    assert agent.failure_reason is None
    assert agent.status == RunAgentStatus.QUEUED


def test_status_histories_record_transition():
    run_history = RunStatusHistory(from_status=RunStatus.QUEUED, to_status=RunStatus.PROVISIONING)
    assert run_history.from_status.can_transition_to(run_history.to_status)
    agent_history = RunAgentStatusHistory(to_status=RunAgentStatus.READY)
    assert agent_history.from_status is None
    assert agent_history.to_status == RunAgentStatus.READY