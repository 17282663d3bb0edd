"""Project context for scoping requests to the caller's project."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException

from pixelguard.config.settings import SENTINEL_PROJECT_ID, SENTINEL_USER_ID

ROLES = ("admin", "member", "viewer")


@dataclass(frozen=True, slots=True)
class ProjectContext:
    """Immutable caller context carried through each request."""

    project_id: str
    user_id: str
    role: str  # admin | member | viewer


async def get_project_context(
    x_project_id: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
    x_role: str = Header(default="admin"),
) -> ProjectContext:
    """Resolve the caller's project scope from upstream-supplied headers.

    Authentication happens in front of this service; without headers the
    sentinel project is used (single-tenant mode).
    """
    if x_role not in ROLES:
        raise HTTPException(status_code=400, detail=f"Unknown role: {x_role}")
    return ProjectContext(
        project_id=x_project_id or SENTINEL_PROJECT_ID,
        user_id=x_user_id or SENTINEL_USER_ID,
        role=x_role,
    )


async def require_editor(
    context: ProjectContext = Depends(get_project_context),
) -> ProjectContext:
    """Require at least member role (blocks viewers)."""
    if context.role == "viewer":
        raise HTTPException(status_code=403, detail="Member access required")
    return context
