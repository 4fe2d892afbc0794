# arenaapi

A WSGI application for the HTTP API of an agent evaluation arena. In the
arena, callers queue *runs* in which one or more agent deployments compete on
a challenge pack version. Callers then read back the run, its run agents (one
per lane), and each run agent's replay summary and scorecard.

The package holds the HTTP layer, the services behind it, and the domain
records. You supply the storage and the workflow starter as plain Python
objects (see "What you provide" below).

## Endpoints

`arenaapi.server.ApiApplication` serves these endpoints:

| Method | Path                                      | Purpose                                                  |
|--------|-------------------------------------------|----------------------------------------------------------|
| GET    | `/healthz`                                | Liveness check: `{"ok": true, "service": "api-server"}`  |
| GET    | `/v1/auth/session`                        | The authenticated caller and their workspace memberships |
| POST   | `/v1/runs`                                | Queue a new run and start its workflow                   |
| GET    | `/v1/runs/{run_id}`                       | Read one run                                             |
| GET    | `/v1/runs/{run_id}/agents`                | List a run's agents in the order storage returns them    |
| GET    | `/v1/replays/{run_agent_id}`              | Replay summary of one run agent                          |
| GET    | `/v1/scorecards/{run_agent_id}`           | Scorecard of one run agent                               |
| GET    | `/v1/workspaces/{workspace_id}/auth-check`| Check that the caller belongs to a workspace             |

Every path under `/v1` authenticates the request first. A request that fails
authentication gets `401`. The endpoints report errors in one JSON envelope:

```json
{"error": {"code": "run_not_found", "message": "run not found"}}
```

The codes include `unauthorized`, `forbidden`, `invalid_run_id`,
`invalid_run_agent_id`, `invalid_workspace_id`, `run_not_found`,
`run_agent_not_found`, `replay_not_found`, `scorecard_not_found`,
`unsupported_media_type`, `request_too_large`, `invalid_request` and
`internal_error`. A path or method that no endpoint matches gets Werkzeug's
own 404 or 405 response. If a handler raises an unexpected exception, the
application logs it and answers `500 internal_error`.

### Creating a run

`POST /v1/runs` takes a JSON object with these fields:

- `workspace_id`
- `challenge_pack_version_id`
- an optional `challenge_input_set_id`
- an optional `name`
- `agent_deployment_ids`

Any other field is rejected. The request must have the content type
`application/json`, or it gets `415`. The body must be 1 MiB or smaller, or it
gets `413`. Malformed or missing ids give `400` with codes such as
`invalid_workspace_id` or `invalid_agent_deployment_ids`.

A created run is returned with `201`. The body includes `links.self` and
`links.agents`. If the run was stored but its workflow could not be started,
the response is `502` with the code `workflow_start_failed` and the queued run
under `"run"`.

The pieces the endpoint uses can also be called directly:

- `decode_create_run_request`
- `parse_required_uuid`
- `require_json_content_type`
- `build_create_run_response`

## Authentication and authorization

`arenaapi.auth.DevelopmentAuthenticator.authenticate(headers)` builds a
`Caller` from request headers. It trusts what the client sends, so it is meant
for development only. It reads these headers:

- `X-Agentclash-User-Id`: the user's UUID (required)
- `X-Agentclash-WorkOS-User-Id`, `X-Agentclash-User-Email`,
  `X-Agentclash-User-Display-Name`: optional profile fields
- `X-Agentclash-Workspace-Memberships`: comma-separated `workspace-uuid:role`
  pairs

A missing or invalid header raises `UnauthenticatedError`.

```python
from arenaapi.auth import CallerWorkspaceAuthorizer, DevelopmentAuthenticator

caller = DevelopmentAuthenticator().authenticate({
    "X-Agentclash-User-Id": "6f1c2a9e-0000-4000-8000-000000000001",
    "X-Agentclash-User-Email": "dev@example.com",
    "X-Agentclash-Workspace-Memberships":
        "6f1c2a9e-0000-4000-8000-0000000000aa:workspace_member",
})
membership = CallerWorkspaceAuthorizer().authorize_workspace(
    caller, next(iter(caller.workspace_memberships))
)
```

`CallerWorkspaceAuthorizer.authorize_workspace` returns the caller's
`WorkspaceMembership`. It raises `ForbiddenError` when the caller does not
belong to the workspace.

`parse_workspace_memberships` parses the membership header on its own and
raises `ValueError` on a malformed entry. `sorted_workspace_memberships`
orders memberships by workspace id.

## Run lifecycle

`arenaapi.domain` defines the `RunStatus` and `RunAgentStatus` enums and their
fixed transition tables. It also defines the `Run`, `RunAgent`,
`RunStatusHistory` and `RunAgentStatusHistory` records.

```python
from arenaapi.domain import RunStatus, parse_run_status

status = parse_run_status("queued")
status.can_transition_to(RunStatus.PROVISIONING)  # True
status.can_transition_to(RunStatus.COMPLETED)     # False
```

An unknown status string raises `InvalidRunStatusError` or
`InvalidRunAgentStatusError`. Both are subclasses of `ValueError`.

## Services

### Creating runs

`arenaapi.run_service.RunCreationManager(authorizer, repo, workflow_starter, now=None)`
has the method `create_run(caller, run_input)`. It works in this order:

1. It checks the caller's access to the workspace.
2. It rejects an empty or duplicated list of deployment ids.
3. It checks that the challenge pack version exists.
4. It checks that the optional input set exists and belongs to that pack
   version.
5. It checks that every deployment is active and has a snapshot.
6. It stores a queued run, with one lane per deployment in the given order.
7. It starts the run's workflow.

A failed check raises `RunCreationValidationError`, which carries a `code` and
a `message`. A failed workflow start raises `RunWorkflowStartError`, which
carries the stored `run` and the `cause`.

A run without a name is named after its creation time in UTC, for example
`Run 2026-03-13T12:00:00Z` (see `default_run_name`). A run with a single agent
has the execution mode `single_agent`. A run with several agents has the mode
`comparison`. `build_execution_plan` returns the stored plan as compact JSON
bytes.

### Reading runs, replays and scorecards

- `arenaapi.run_reads.RunReadManager(authorizer, repo)` has the methods
  `get_run` and `list_run_agents`.
- `arenaapi.replay_reads.ReplayReadManager(authorizer, repo)` has the methods
  `get_run_agent_replay` and `get_run_agent_scorecard`.

Both managers check access against the workspace of the stored record. Both
modules also provide the functions that build the response bodies:

- `build_get_run_response`
- `build_run_agent_response`
- `build_run_links`
- `build_run_agent_replay_response`
- `build_run_agent_scorecard_response`

## What you provide

The package has no storage and no workflow engine. Any object with the right
methods can serve as a repository or starter.

The repository for `RunCreationManager` needs these methods:

- `get_runnable_challenge_pack_version_by_id(id)`
- `get_challenge_input_set_by_id(id)`
- `list_runnable_deployments_with_latest_snapshot(workspace_id, deployment_ids)`
- `create_queued_run(params)`, which receives `CreateQueuedRunParams` and
  returns `CreateQueuedRunResult`

The workflow starter needs `start_run_workflow(run_id)`.

The repository for `RunReadManager` needs these methods:

- `get_run_by_id(id)`
- `list_run_agents_by_run_id(run_id)`

The repository for `ReplayReadManager` needs these methods:

- `get_run_agent_by_id(id)`
- `get_run_agent_replay_by_run_agent_id(run_agent_id)`
- `get_run_agent_scorecard_by_run_agent_id(run_agent_id)`

To report a missing record, repositories raise the errors from
`arenaapi.records`. They are all subclasses of `NotFoundError`:

- `RunNotFoundError`
- `RunAgentNotFoundError`
- `RunAgentReplayNotFoundError`
- `RunAgentScorecardNotFoundError`
- `ChallengePackVersionNotFoundError`
- `ChallengeInputSetNotFoundError`

The record dataclasses are in the same module.

## Serving

```python
from arenaapi.auth import CallerWorkspaceAuthorizer, DevelopmentAuthenticator
from arenaapi.replay_reads import ReplayReadManager
from arenaapi.run_reads import RunReadManager
from arenaapi.run_service import RunCreationManager
from arenaapi.server import ApiApplication, serve

authorizer = CallerWorkspaceAuthorizer()
app = ApiApplication(
    authenticator=DevelopmentAuthenticator(),
    authorizer=authorizer,
    run_creation_service=RunCreationManager(authorizer, repo, workflow_starter),
    run_read_service=RunReadManager(authorizer, repo),
    replay_read_service=ReplayReadManager(authorizer, repo),
)
serve(app, "127.0.0.1", 8080)
```

In this example, `repo` and `workflow_starter` are your own objects.

`ApiApplication` is a plain WSGI callable, so any WSGI server can host it.
`serve` runs it on Werkzeug's development server until the process receives
SIGINT, or SIGTERM when `serve` is called from the main thread.

JSON bodies are encoded by `arenaapi.respond`:

- `to_jsonable` converts records, enums, UUIDs, times (RFC 3339) and raw JSON
  bytes into plain JSON values.
- `json_response`, `error_response` and `health_response` build Werkzeug
  responses.

## What this package does not do

- It does not store runs, deployments, replays or scorecards, and it does not
  talk to a database. Repositories must be supplied.
- It does not run or schedule workflows. It only calls the starter you supply.
- It has no production authentication. `DevelopmentAuthenticator` trusts
  client headers.
- It does not accept events from externally hosted agent runs.
- It has no command-line entry point and reads no configuration from the
  environment. You assemble and serve the application in Python.