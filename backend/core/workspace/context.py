from __future__ import annotations

from uuid import UUID

from fastapi import Header, HTTPException, status

from backend.core.observability.logging import set_workspace_id
from backend.core.observability.metrics import increment_workspace_validation_failure


def require_workspace(
    workspace_header: str | None = Header(None, alias="X-Workspace-ID", convert_underscores=False)
) -> str:
    """FastAPI dependency resolving the calling workspace from X-Workspace-ID.

    Returns the normalized workspace UUID string; raises HTTPException when the
    header is missing or not a UUID.
    """
    if not workspace_header:
        increment_workspace_validation_failure("missing")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "workspace_missing", "detail": "X-Workspace-ID header is required"},
        )
    try:
        workspace_id = str(UUID(workspace_header.strip()))
    except (ValueError, TypeError) as exc:
        increment_workspace_validation_failure("malformed")
        raise HTTPException(
            status_code=422,
            detail={"error": "workspace_malformed", "detail": "X-Workspace-ID must be a UUID"},
        ) from exc
    set_workspace_id(workspace_id)
    return workspace_id


def optional_actor(
    actor_header: str | None = Header(None, alias="X-User-ID", convert_underscores=False)
) -> str | None:
    """Acting user id recorded on payments and audit rows, when supplied."""
    if actor_header is None:
        return None
    return actor_header.strip() or None
