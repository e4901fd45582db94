"""Preview models: projects held by the compile authority and the preview wire shapes."""

from __future__ import annotations

from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field


class Project(BaseModel):
    """A project's current file map. Owned by one user."""

    id: UUID
    owner_id: str
    files: dict[str, str] = Field(default_factory=dict)
    version: int = 0


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


class UpdateFileRequest(BaseModel):
    """What the client sends to PUT /preview/project/{id}/file."""

    model_config = {"extra": "forbid", "populate_by_name": True}

    file_path: str = Field(alias="filePath", min_length=1, max_length=1024)
    content: str


class UpdateFileResponse(BaseModel):
    """What the file update endpoint returns."""

    success: bool
    html: str


# ---------------------------------------------------------------------------
# WebSocket (client → server)
# ---------------------------------------------------------------------------


class JoinProjectMessage(BaseModel):
    model_config = {"extra": "forbid", "populate_by_name": True}

    type: Literal["join-project"]
    project_id: str = Field(alias="projectId")
    user_id: str = Field(alias="userId")
    token: str


class UpdateFileMessage(BaseModel):
    model_config = {"extra": "forbid", "populate_by_name": True}

    type: Literal["update-file"]
    project_id: str = Field(alias="projectId")
    file_path: str = Field(alias="filePath", min_length=1, max_length=1024)
    content: str
    seq: int | None = None


class RefreshPreviewMessage(BaseModel):
    model_config = {"extra": "forbid", "populate_by_name": True}

    type: Literal["refresh-preview"]
    project_id: str = Field(alias="projectId")
    seq: int | None = None
