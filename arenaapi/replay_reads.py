"""Reading replays and scorecards of run agents on behalf of an authorized caller."""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from arenaapi.auth import Caller
from arenaapi.domain import RunAgent
from arenaapi.records import RunAgentReplay, RunAgentScorecard


@dataclass
class GetRunAgentReplayResult:
    """A run agent and its replay summary."""

    run_agent: RunAgent = field(default_factory=RunAgent)
    replay: RunAgentReplay = field(default_factory=RunAgentReplay)


@dataclass
class GetRunAgentScorecardResult:
    """A run agent and its scorecard."""

    run_agent: RunAgent = field(default_factory=RunAgent)
    scorecard: RunAgentScorecard = field(default_factory=RunAgentScorecard)


class ReplayReadManager:
    """Loads replays and scorecards after checking access to the run agent's workspace."""

    def __init__(self, authorizer, repo) -> None:
        self.authorizer = authorizer
        self.repo = repo

    def _load_authorized_run_agent(self, caller: Caller, run_agent_id: UUID) -> RunAgent:
        run_agent = self.repo.get_run_agent_by_id(run_agent_id)
        self.authorizer.authorize_workspace(caller, run_agent.workspace_id)
        return run_agent

    def get_run_agent_replay(self, caller: Caller, run_agent_id: UUID) -> GetRunAgentReplayResult:
        """Return the replay of a run agent the caller may see."""
        run_agent = self._load_authorized_run_agent(caller, run_agent_id)
        replay = self.repo.get_run_agent_replay_by_run_agent_id(run_agent_id)
        return GetRunAgentReplayResult(run_agent=run_agent, replay=replay)

    def get_run_agent_scorecard(
        self, caller: Caller, run_agent_id: UUID
    ) -> GetRunAgentScorecardResult:
        """Return the scorecard of a run agent the caller may see."""
        run_agent = self._load_authorized_run_agent(caller, run_agent_id)
        scorecard = self.repo.get_run_agent_scorecard_by_run_agent_id(run_agent_id)
        return GetRunAgentScorecardResult(run_agent=run_agent, scorecard=scorecard)


def build_run_agent_replay_response(run_agent: RunAgent, replay: RunAgentReplay) -> dict:
    """Return the response body for a replay; unset optional fields are left out."""
    body: dict = {
        "id": replay.id,
        "run_agent_id": replay.run_agent_id,
        "run_id": run_agent.run_id,
    }
    if replay.artifact_id is not None:
        body["artifact_id"] = replay.artifact_id
    body["summary"] = replay.summary
    if replay.latest_sequence_number is not None:
        body["latest_sequence_number"] = replay.latest_sequence_number
    body["event_count"] = replay.event_count
    body["created_at"] = replay.created_at
    body["updated_at"] = replay.updated_at
    return body


def build_run_agent_scorecard_response(
    run_agent: RunAgent, scorecard: RunAgentScorecard
) -> dict:
    """Return the response body for a scorecard; unset scores are left out."""
    body: dict = {
        "id": scorecard.id,
        "run_agent_id": scorecard.run_agent_id,
        "run_id": run_agent.run_id,
        "evaluation_spec_id": scorecard.evaluation_spec_id,
    }
    scores = (
        ("overall_score", scorecard.overall_score),
        ("correctness_score", scorecard.correctness_score),
        ("reliability_score", scorecard.reliability_score),
        ("latency_score", scorecard.latency_score),
        ("cost_score", scorecard.cost_score),
    )
    body.update((name, value) for name, value in scores if value is not None)
    body["scorecard"] = scorecard.scorecard
    body["created_at"] = scorecard.created_at
    body["updated_at"] = scorecard.updated_at
    return body