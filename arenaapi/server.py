"""WSGI application exposing the run, replay and session endpoints."""

from __future__ import annotations

import json
import logging
import re
import signal
import threading
import time
import traceback
from uuid import UUID

from werkzeug.exceptions import HTTPException
from werkzeug.http import parse_options_header
from werkzeug.routing import Map, Rule
from werkzeug.serving import make_server
from werkzeug.wrappers import Request, Response

from arenaapi.auth import (
    CallerMissingError,
    ForbiddenError,
    UnauthenticatedError,
    WorkspaceIdMalformedError,
    WorkspaceIdRequiredError,
    sorted_workspace_memberships,
)
from arenaapi.domain import Run
from arenaapi.records import (
    RunAgentNotFoundError,
    RunAgentReplayNotFoundError,
    RunAgentScorecardNotFoundError,
    RunNotFoundError,
)
from arenaapi.replay_reads import (
    build_run_agent_replay_response,
    build_run_agent_scorecard_response,
)
from arenaapi.respond import error_response, health_response, json_response
from arenaapi.run_reads import (
    build_get_run_response,
    build_run_agent_response,
    build_run_links,
)
from arenaapi.run_service import (
    CreateRunInput,
    RunCreationValidationError,
    RunWorkflowStartError,
)

MAX_CREATE_RUN_REQUEST_BYTES = 1 << 20

_LOGGER = logging.getLogger("arenaapi.server")

_JSON_WHITESPACE = " \t\r\n"
_CREATE_RUN_FIELDS = (
    "workspace_id",
    "challenge_pack_version_id",
    "challenge_input_set_id",
    "name",
    "agent_deployment_ids",
)
_DASHED_UUID = re.compile(
    r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"
)
_PLAIN_UUID = re.compile(r"[0-9a-fA-F]{32}")


def _parse_uuid(raw: str) -> UUID:
    text = raw
    if len(text) == 45 and text[:9].lower() == "urn:uuid:":
        text = text[9:]
    elif len(text) == 38 and text.startswith("{") and text.endswith("}"):
        text = text[1:-1]
    if (len(text) == 36 and _DASHED_UUID.fullmatch(text)) or (
        len(text) == 32 and _PLAIN_UUID.fullmatch(text)
    ):
        return UUID(text)
    raise ValueError(f"invalid UUID {raw!r}")


def build_create_run_response(run: Run) -> dict:
    """Return the response body for a newly created run."""
    body: dict = {
        "id": run.id,
        "workspace_id": run.workspace_id,
        "challenge_pack_version_id": run.challenge_pack_version_id,
    }
    if run.challenge_input_set_id is not None:
        body["challenge_input_set_id"] = run.challenge_input_set_id
    body["status"] = run.status
    body["execution_mode"] = run.execution_mode
    body["created_at"] = run.created_at
    if run.queued_at is not None:
        body["queued_at"] = run.queued_at
    body["links"] = build_run_links(run.id)
    return body


def parse_required_uuid(raw, field: str, code: str) -> UUID:
    """Parse a required UUID field, raising :class:`RunCreationValidationError`."""
    text = (raw or "").strip()
    if not text:
        raise RunCreationValidationError(code, f"{field} is required")
    try:
        return _parse_uuid(text)
    except ValueError:
        raise RunCreationValidationError(code, f"{field} must be a valid UUID") from None


def _invalid_json() -> RunCreationValidationError:
    return RunCreationValidationError("invalid_request", "request body must be valid JSON")


def _reject_constant(name: str):
    raise ValueError(f"invalid JSON constant {name}")


def _canonical_fields(document: dict) -> dict:
    fields: dict = {}
    for key, value in document.items():
        name = key if key in _CREATE_RUN_FIELDS else key.lower()
        if name not in _CREATE_RUN_FIELDS:
            raise _invalid_json()
        fields[name] = value
    return fields


def _optional_string(value) -> str | None:
    if value is None or isinstance(value, str):
        return value
    raise _invalid_json()


def decode_create_run_request(body) -> CreateRunInput:
    """Decode and validate the JSON body of a create-run request."""
    if isinstance(body, (bytes, bytearray)):
        text = bytes(body).decode("utf-8", errors="replace")
    else:
        text = body or ""
    stripped = text.lstrip(_JSON_WHITESPACE)
    if not stripped:
        raise RunCreationValidationError("invalid_request", "request body is required")

    try:
        document, end = json.JSONDecoder(parse_constant=_reject_constant).raw_decode(stripped)
    except ValueError:
        raise _invalid_json() from None
    if document is None:
        document = {}
    if not isinstance(document, dict):
        raise _invalid_json()
    fields = _canonical_fields(document)

    workspace_raw = _optional_string(fields.get("workspace_id"))
    pack_raw = _optional_string(fields.get("challenge_pack_version_id"))
    input_set_raw = _optional_string(fields.get("challenge_input_set_id"))
    name = _optional_string(fields.get("name")) or ""
    raw_deployments = fields.get("agent_deployment_ids")
    if raw_deployments is None:
        raw_deployments = []
    if not isinstance(raw_deployments, list):
        raise _invalid_json()
    deployment_strings = [_optional_string(item) for item in raw_deployments]

    remainder = stripped[end:].lstrip(_JSON_WHITESPACE)
    if remainder and remainder[0] not in "]}":
        raise RunCreationValidationError(
            "invalid_request", "request body must contain exactly one JSON object"
        )

    workspace_id = parse_required_uuid(workspace_raw, "workspace_id", "invalid_workspace_id")
    pack_version_id = parse_required_uuid(
        pack_raw, "challenge_pack_version_id", "invalid_challenge_pack_version_id"
    )
    input_set_id = None
    if input_set_raw is not None and input_set_raw.strip():
        input_set_id = parse_required_uuid(
            input_set_raw, "challenge_input_set_id", "invalid_challenge_input_set_id"
        )
    deployment_ids = [
        parse_required_uuid(raw, "agent_deployment_ids", "invalid_agent_deployment_ids")
        for raw in deployment_strings
    ]

    return CreateRunInput(
        workspace_id=workspace_id,
        challenge_pack_version_id=pack_version_id,
        challenge_input_set_id=input_set_id,
        name=name.strip(),
        agent_deployment_ids=deployment_ids,
    )


def require_json_content_type(content_type) -> str:
    """Return the media type, raising ValueError unless it is application/json."""
    mimetype, _ = parse_options_header(content_type or "")
    mimetype = mimetype.strip().lower()
    if mimetype != "application/json":
        raise ValueError("content type must be application/json")
    return mimetype


def _authz_error_response(exc: BaseException) -> Response:
    if isinstance(exc, (UnauthenticatedError, CallerMissingError)):
        return error_response(401, "unauthorized", "authentication required")
    if isinstance(exc, ForbiddenError):
        return error_response(403, "forbidden", "workspace access denied")
    return error_response(500, "internal_error", "internal server error")


def _internal_error() -> Response:
    return error_response(500, "internal_error", "internal server error")


def _id_param(raw: str, label: str) -> UUID:
    if not raw:
        raise ValueError(f"{label} is required")
    try:
        return _parse_uuid(raw)
    except ValueError:
        raise ValueError(f"{label} must be a valid UUID") from None


def _is_protected(path: str) -> bool:
    return path == "/v1" or path.startswith("/v1/")


class ApiApplication:
    """The API server's WSGI application."""

    def __init__(
        self,
        authenticator,
        authorizer,
        run_creation_service,
        run_read_service,
        replay_read_service,
        logger: logging.Logger | None = None,
    ) -> None:
        self.authenticator = authenticator
        self.authorizer = authorizer
        self.run_creation_service = run_creation_service
        self.run_read_service = run_read_service
        self.replay_read_service = replay_read_service
        self.logger = logger or _LOGGER
        self._url_map = Map(
            [
                Rule("/healthz", endpoint="healthz", methods=["GET"]),
                Rule("/v1/auth/session", endpoint="session", methods=["GET"]),
                Rule("/v1/runs", endpoint="create_run", methods=["POST"]),
                Rule("/v1/runs/<run_id>", endpoint="get_run", methods=["GET"]),
                Rule("/v1/runs/<run_id>/agents", endpoint="list_run_agents", methods=["GET"]),
                Rule("/v1/replays/<run_agent_id>", endpoint="replay", methods=["GET"]),
                Rule("/v1/scorecards/<run_agent_id>", endpoint="scorecard", methods=["GET"]),
                Rule(
                    "/v1/workspaces/<workspace_id>/auth-check",
                    endpoint="auth_check",
                    methods=["GET"],
                ),
            ],
            strict_slashes=False,
            merge_slashes=False,
        )
        self._handlers = {
            "healthz": self._healthz,
            "session": self._session,
            "create_run": self._create_run,
            "get_run": self._get_run,
            "list_run_agents": self._list_run_agents,
            "replay": self._replay,
            "scorecard": self._scorecard,
            "auth_check": self._auth_check,
        }

    def __call__(self, environ, start_response):
        request = Request(environ)
        response = self._recover(request)
        return response(environ, start_response)

    def _recover(self, request: Request) -> Response:
        try:
            return self._log_request(request)
        except Exception as exc:
            self.logger.error(
                "panic recovered from http handler method=%s path=%s panic=%s stack=%s",
                request.method,
                request.path,
                exc,
                traceback.format_exc(),
            )
            return _internal_error()

    def _log_request(self, request: Request) -> Response:
        started = time.monotonic()
        response = self._dispatch(request)
        self.logger.info(
            "http request completed method=%s path=%s status=%d duration_ms=%d",
            request.method,
            request.path,
            response.status_code,
            int((time.monotonic() - started) * 1000),
        )
        return response

    def _dispatch(self, request: Request) -> Response:
        caller = None
        if _is_protected(request.path):
            try:
                caller = self.authenticator.authenticate(request.headers)
            except Exception as exc:
                self.logger.warning(
                    "request authentication failed method=%s path=%s error=%s",
                    request.method,
                    request.path,
                    exc,
                )
                return error_response(401, "unauthorized", "authentication required")

        adapter = self._url_map.bind_to_environ(request.environ)
        try:
            endpoint, args = adapter.match()
        except HTTPException as exc:
            return exc.get_response(request.environ)
        return self._handlers[endpoint](request, caller, **args)

    def _healthz(self, request: Request, caller) -> Response:
        return health_response()

    def _session(self, request: Request, caller) -> Response:
        if caller is None:
            return _authz_error_response(CallerMissingError())
        body: dict = {"user_id": caller.user_id}
        if caller.workos_user_id:
            body["workos_user_id"] = caller.workos_user_id
        if caller.email:
            body["email"] = caller.email
        if caller.display_name:
            body["display_name"] = caller.display_name
        body["workspace_memberships"] = sorted_workspace_memberships(
            caller.workspace_memberships
        )
        return json_response(200, body)

    def _auth_check(self, request: Request, caller, workspace_id: str) -> Response:
        if caller is None:
            return _authz_error_response(CallerMissingError())
        try:
            if not workspace_id:
                raise WorkspaceIdRequiredError()
            try:
                resolved = _parse_uuid(workspace_id)
            except ValueError:
                raise WorkspaceIdMalformedError() from None
        except (WorkspaceIdRequiredError, WorkspaceIdMalformedError) as exc:
            return error_response(400, "invalid_workspace_id", str(exc))
        try:
            self.authorizer.authorize_workspace(caller, resolved)
        except Exception as exc:
            return _authz_error_response(exc)
        return json_response(200, {"ok": True, "workspace_id": resolved})

    def _create_run(self, request: Request, caller) -> Response:
        if caller is None:
            return _authz_error_response(CallerMissingError())
        try:
            require_json_content_type(request.headers.get("Content-Type"))
        except ValueError as exc:
            return error_response(415, "unsupported_media_type", str(exc))

        body = request.stream.read(MAX_CREATE_RUN_REQUEST_BYTES + 1)
        if len(body) > MAX_CREATE_RUN_REQUEST_BYTES:
            return error_response(
                413, "request_too_large", "request body must be 1 MiB or smaller"
            )
        try:
            run_input = decode_create_run_request(body)
        except RunCreationValidationError as exc:
            return error_response(400, exc.code, exc.message)

        try:
            result = self.run_creation_service.create_run(caller, run_input)
        except ForbiddenError as exc:
            return _authz_error_response(exc)
        except RunCreationValidationError as exc:
            return error_response(400, exc.code, exc.message)
        except RunWorkflowStartError as exc:
            return json_response(
                502,
                {
                    "error": {
                        "code": "workflow_start_failed",
                        "message": "run was created but the workflow could not be started",
                    },
                    "run": build_create_run_response(exc.run),
                },
            )
        except Exception as exc:
            self.logger.error(
                "create run request failed method=%s path=%s error=%s",
                request.method,
                request.path,
                exc,
            )
            return _internal_error()

        return json_response(201, build_create_run_response(result.run))

    def _read_failure(
        self, request: Request, exc: Exception, not_found, log_message: str, id_name: str, id_value
    ) -> Response:
        for error_type, code, message in not_found:
            if isinstance(exc, error_type):
                return error_response(404, code, message)
        if isinstance(exc, ForbiddenError):
            return _authz_error_response(exc)
        self.logger.error(
            "%s method=%s path=%s %s=%s error=%s",
            log_message,
            request.method,
            request.path,
            id_name,
            id_value,
            exc,
        )
        return _internal_error()

    def _get_run(self, request: Request, caller, run_id: str) -> Response:
        if caller is None:
            return _authz_error_response(CallerMissingError())
        try:
            resolved = _id_param(run_id, "run id")
        except ValueError as exc:
            return error_response(400, "invalid_run_id", str(exc))
        try:
            result = self.run_read_service.get_run(caller, resolved)
        except Exception as exc:
            return self._read_failure(
                request,
                exc,
                [(RunNotFoundError, "run_not_found", "run not found")],
                "get run request failed",
                "run_id",
                resolved,
            )
        return json_response(200, build_get_run_response(result.run))

    def _list_run_agents(self, request: Request, caller, run_id: str) -> Response:
        if caller is None:
            return _authz_error_response(CallerMissingError())
        try:
            resolved = _id_param(run_id, "run id")
        except ValueError as exc:
            return error_response(400, "invalid_run_id", str(exc))
        try:
            result = self.run_read_service.list_run_agents(caller, resolved)
        except Exception as exc:
            return self._read_failure(
                request,
                exc,
                [(RunNotFoundError, "run_not_found", "run not found")],
                "list run agents request failed",
                "run_id",
                resolved,
            )
        items = [build_run_agent_response(agent) for agent in result.run_agents]
        return json_response(200, {"items": items})

    def _replay(self, request: Request, caller, run_agent_id: str) -> Response:
        if caller is None:
            return _authz_error_response(CallerMissingError())
        try:
            resolved = _id_param(run_agent_id, "run agent id")
        except ValueError as exc:
            return error_response(400, "invalid_run_agent_id", str(exc))
        try:
            result = self.replay_read_service.get_run_agent_replay(caller, resolved)
        except Exception as exc:
            return self._read_failure(
                request,
                exc,
                [
                    (RunAgentNotFoundError, "run_agent_not_found", "run agent not found"),
                    (RunAgentReplayNotFoundError, "replay_not_found", "replay not found"),
                ],
                "get run-agent replay request failed",
                "run_agent_id",
                resolved,
            )
        return json_response(
            200, build_run_agent_replay_response(result.run_agent, result.replay)
        )

    def _scorecard(self, request: Request, caller, run_agent_id: str) -> Response:
        if caller is None:
            return _authz_error_response(CallerMissingError())
        try:
            resolved = _id_param(run_agent_id, "run agent id")
        except ValueError as exc:
            return error_response(400, "invalid_run_agent_id", str(exc))
        try:
            result = self.replay_read_service.get_run_agent_scorecard(caller, resolved)
        except Exception as exc:
            return self._read_failure(
                request,
                exc,
                [
                    (RunAgentNotFoundError, "run_agent_not_found", "run agent not found"),
                    (
                        RunAgentScorecardNotFoundError,
                        "scorecard_not_found",
                        "scorecard not found",
                    ),
                ],
                "get run-agent scorecard request failed",
                "run_agent_id",
                resolved,
            )
        return json_response(
            200, build_run_agent_scorecard_response(result.run_agent, result.scorecard)
        )


def _interrupt(signum, frame):
    raise KeyboardInterrupt


def serve(app, host, port) -> None:
    """Serve ``app`` until interrupted by SIGINT or SIGTERM."""
    logger = getattr(app, "logger", _LOGGER)
    server = make_server(host, port, app, threaded=True)
    logger.info("starting api server bind_address=%s:%s", host, port)
    in_main_thread = threading.current_thread() is threading.main_thread()
    previous = signal.signal(signal.SIGTERM, _interrupt) if in_main_thread else None
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()
        if in_main_thread and previous is not None:
            signal.signal(signal.SIGTERM, previous)