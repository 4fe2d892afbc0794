"""Callers, workspace memberships, authorization and development authentication."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from uuid import UUID

from arenaapi.domain import NIL_UUID

HEADER_USER_ID = "X-Agentclash-User-Id"
HEADER_WORKOS_USER_ID = "X-Agentclash-WorkOS-User-Id"
HEADER_USER_EMAIL = "X-Agentclash-User-Email"
HEADER_USER_DISPLAY_NAME = "X-Agentclash-User-Display-Name"
HEADER_WORKSPACE_MEMBERSHIPS = "X-Agentclash-Workspace-Memberships"


class AuthError(Exception):
    """Base class for authentication and authorization failures."""

    reason = "authorization failed"

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(f"{self.reason}: {detail}" if detail else self.reason)


class UnauthenticatedError(AuthError):
    reason = "unauthenticated"


class ForbiddenError(AuthError):
    reason = "forbidden"


class CallerMissingError(AuthError):
    reason = "caller missing from request context"


class WorkspaceIdRequiredError(AuthError):
    reason = "workspace id is required"


class WorkspaceIdMalformedError(AuthError):
    reason = "workspace id is malformed"


@dataclass(frozen=True)
class WorkspaceMembership:
    """A caller's role within one workspace."""

    workspace_id: UUID
    role: str


@dataclass
class Caller:
    """An authenticated user and the workspaces they belong to."""

    user_id: UUID = NIL_UUID
    workos_user_id: str = ""
    email: str = ""
    display_name: str = ""
    workspace_memberships: dict[UUID, WorkspaceMembership] = field(default_factory=dict)


def sorted_workspace_memberships(memberships) -> list[WorkspaceMembership]:
    """Return the memberships ordered by the text form of their workspace id."""
    return sorted(memberships.values(), key=lambda m: str(m.workspace_id))


class CallerWorkspaceAuthorizer:
    """Authorizes workspace access from the caller's own memberships."""

    def authorize_workspace(self, caller: Caller, workspace_id: UUID) -> WorkspaceMembership:
        """Return the caller's membership or raise :class:`ForbiddenError`."""
        membership = caller.workspace_memberships.get(workspace_id)
        if membership is None:
            raise ForbiddenError(
                f"caller {caller.user_id} does not belong to workspace {workspace_id}"
            )
        return membership


def _first_values(headers) -> dict[str, str]:
    values: dict[str, str] = {}
    for name, value in headers.items():
        values.setdefault(name.lower(), value)
    return values


class DevelopmentAuthenticator:
    """Trusts identity headers sent by the client; for development use."""

    def authenticate(self, headers) -> Caller:
        """Build a :class:`Caller` from request headers."""
        values = _first_values(headers)

        def header(name: str) -> str:
            return values.get(name.lower(), "").strip()

        raw_user_id = header(HEADER_USER_ID)
        if not raw_user_id:
            raise UnauthenticatedError()
        try:
            user_id = UUID(raw_user_id)
        except ValueError:
            raise UnauthenticatedError(f"invalid {HEADER_USER_ID} header") from None

        try:
            memberships = parse_workspace_memberships(
                values.get(HEADER_WORKSPACE_MEMBERSHIPS.lower(), "")
            )
        except ValueError as exc:
            raise UnauthenticatedError(str(exc)) from exc

        return Caller(
            user_id=user_id,
            workos_user_id=header(HEADER_WORKOS_USER_ID),
            email=header(HEADER_USER_EMAIL),
            display_name=header(HEADER_USER_DISPLAY_NAME),
            workspace_memberships=memberships,
        )


def parse_workspace_memberships(raw) -> dict[UUID, WorkspaceMembership]:
    """Parse ``id:role`` pairs separated by commas; raise ValueError when malformed."""
    memberships: dict[UUID, WorkspaceMembership] = {}
    if raw is None or not raw.strip():
        return memberships

    for entry in raw.split(","):
        parts = entry.strip().split(":")
        if len(parts) != 2:
            raise ValueError(
                f"invalid {HEADER_WORKSPACE_MEMBERSHIPS} entry {json.dumps(entry)}"
            )
        raw_id, raw_role = parts
        try:
            workspace_id = UUID(raw_id.strip())
        except ValueError:
            raise ValueError(
                f"invalid workspace id {json.dumps(raw_id)} in {HEADER_WORKSPACE_MEMBERSHIPS}"
            ) from None
        role = raw_role.strip()
        if not role:
            raise ValueError(f"missing workspace role in {HEADER_WORKSPACE_MEMBERSHIPS}")
        memberships[workspace_id] = WorkspaceMembership(workspace_id=workspace_id, role=role)

    return memberships