import dataclasses
import uuid

import pytest

from arenaapi.domain import Run, RunStatus
from arenaapi.records import (
    ChallengeInputSet,
    ChallengeInputSetNotFoundError,
    ChallengePackVersionNotFoundError,
    CreateQueuedRunAgentParams,
    CreateQueuedRunParams,
    CreateQueuedRunResult,
    NotFoundError,
    RunAgentNotFoundError,
    RunAgentReplay,
    RunAgentReplayNotFoundError,
    RunAgentScorecard,
    RunAgentScorecardNotFoundError,
    RunNotFoundError,
    RunnableChallengePackVersion,
    RunnableDeployment,
)


@pytest.mark.parametrize(
    "error_class, message",
    [
        (RunNotFoundError, "run not found"),
        (RunAgentNotFoundError, "run agent not found"),
        (RunAgentReplayNotFoundError, "replay not found"),
        (RunAgentScorecardNotFoundError, "scorecard not found"),
    ],
)
def test_not_found_errors_carry_default_message(error_class, message):
    error = error_class()
    assert str(error) == message
    assert isinstance(error, NotFoundError)


@pytest.mark.parametrize(
    "error_class", [ChallengePackVersionNotFoundError, ChallengeInputSetNotFoundError]
)
def test_lookup_errors_are_caught_as_lookup_error(error_class):
    with pytest.raises(LookupError) as info:
        raise error_class()
    assert str(info.value) == error_class.message


def test_not_found_error_accepts_custom_message():
    assert str(RunNotFoundError("run vanished")) == "run vanished"


def test_replay_defaults():
    replay = RunAgentReplay()
    assert replay.event_count == 0
    assert replay.latest_sequence_number is None
    assert replay.summary is None


def test_replay_replace_keeps_other_fields():
    run_agent_id = uuid.uuid4()
    replay = RunAgentReplay(run_agent_id=run_agent_id, summary=b'{"headline":"trace ready"}')
    updated = dataclasses.replace(replay, event_count=42, latest_sequence_number=42)
    assert updated.run_agent_id == run_agent_id
    assert updated.summary == b'{"headline":"trace ready"}'
    assert updated.event_count == 42


def test_scorecard_fields():
    scorecard = RunAgentScorecard(overall_score=0.91, scorecard=b'{"winner":true}')
    assert scorecard.overall_score == 0.91
    assert scorecard.cost_score is None
    assert scorecard.scorecard == b'{"winner":true}'


def test_queued_run_params_lists_are_independent():
    first = CreateQueuedRunParams()
    second = CreateQueuedRunParams()
    first.run_agents.append(CreateQueuedRunAgentParams(label="Alpha"))
    assert second.run_agents == []
    assert [agent.label for agent in first.run_agents] == ["Alpha"]


def test_queued_run_result_holds_run():
    run_id = uuid.uuid4()
    result = CreateQueuedRunResult(run=Run(id=run_id, status=RunStatus.QUEUED))
    assert result.run.id == run_id
    assert result.run.status == RunStatus.QUEUED


def test_deployment_and_challenge_records_compare_by_value():
    ids = [uuid.uuid4() for _ in range(3)]
    assert RunnableDeployment(id=ids[0], name="Support Agent Deployment") == RunnableDeployment(
        id=ids[0], name="Support Agent Deployment"
    )
    assert ChallengeInputSet(id=ids[1], challenge_pack_version_id=ids[2]).challenge_pack_version_id == ids[2]
    assert RunnableChallengePackVersion(id=ids[2]).id == ids[2]