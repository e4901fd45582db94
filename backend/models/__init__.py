"""
Pydantic models for the compile authority.

All data shapes defined here. No imports from services or routes.
"""

from backend.models.preview import (
    JoinProjectMessage,
    Project,
    RefreshPreviewMessage,
    UpdateFileMessage,
    UpdateFileRequest,
    UpdateFileResponse,
)

__all__ = [
    "JoinProjectMessage",
    "Project",
    "RefreshPreviewMessage",
    "UpdateFileMessage",
    "UpdateFileRequest",
    "UpdateFileResponse",
]
