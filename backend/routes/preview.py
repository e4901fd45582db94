"""Preview HTTP routes — precomputed document snapshot and single-file updates."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import HTMLResponse

from backend.auth import get_current_user_id
from backend.models.preview import Project, UpdateFileRequest, UpdateFileResponse
from backend.routes.ws import room_manager
from backend.services.project_store import project_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/preview", tags=["preview"])


def _owned_project(user_id: str, project_id: UUID) -> Project:
    project = project_store.get_for_user(user_id, project_id)
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found.")
    return project


@router.get("/project/{project_id}/html", response_class=HTMLResponse)
async def get_preview_html(
    project_id: UUID,
    user_id: str = Depends(get_current_user_id),
) -> HTMLResponse:
    """Compiled document for the project's current files."""
    project = _owned_project(user_id, project_id)
    document = project_store.render(project)
    return HTMLResponse(content=document.html)


@router.put("/project/{project_id}/file", status_code=200)
async def update_file(
    project_id: UUID,
    req: UpdateFileRequest,
    user_id: str = Depends(get_current_user_id),
) -> UpdateFileResponse:
    """
    Apply one file edit and return the recompiled document.
    Members of the project's websocket room receive it as a push.
    """
    _owned_project(user_id, project_id)
    project = project_store.update_file(project_id, req.file_path, req.content)
    document = project_store.render(project)
    logger.info("preview: http update project=%s file=%s", project_id, req.file_path)

    await room_manager.broadcast(
        project_id,
        {"type": "preview-updated", "html": document.html, "filePath": req.file_path, "seq": None},
    )
    return UpdateFileResponse(success=True, html=document.html)
