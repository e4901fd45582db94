"""
In-memory project store for the compile authority.

Holds each project's flat file map and owner, and memoizes the compiled
document per file-map version so repeated snapshot requests do not
recompile. Project CRUD proper lives outside this service; projects are
registered with create().
"""

from __future__ import annotations

import logging
from uuid import UUID, uuid4

from backend.models.preview import Project
from preview_engine.kernel.compilers import compile_project
from preview_engine.kernel.types import CompiledDocument

logger = logging.getLogger(__name__)


class ProjectStore:
    def __init__(self) -> None:
        self._projects: dict[UUID, Project] = {}
        self._documents: dict[UUID, tuple[int, CompiledDocument]] = {}

    def create(self, owner_id: str, files: dict[str, str] | None = None, project_id: UUID | None = None) -> Project:
        project = Project(id=project_id or uuid4(), owner_id=owner_id, files=dict(files or {}))
        self._projects[project.id] = project
        self._documents.pop(project.id, None)
        logger.info("store: registered project=%s (%d files)", project.id, len(project.files))
        return project

    def get(self, project_id: UUID) -> Project | None:
        return self._projects.get(project_id)

    def get_for_user(self, user_id: str, project_id: UUID) -> Project | None:
        """The project, if it exists and belongs to user_id."""
        project = self._projects.get(project_id)
        if project is None or project.owner_id != user_id:
            return None
        return project

    def update_file(self, project_id: UUID, file_path: str, content: str) -> Project:
        project = self._projects[project_id]
        project.files[file_path] = content
        project.version += 1
        return project

    def render(self, project: Project) -> CompiledDocument:
        """Compiled document for the project's current files."""
        cached = self._documents.get(project.id)
        if cached is not None and cached[0] == project.version:
            return cached[1]
        document = compile_project(project.files)
        self._documents[project.id] = (project.version, document)
        logger.debug(
            "store: compiled project=%s v%d as %s in %.1fms",
            project.id,
            project.version,
            document.framework.value,
            document.compile_duration_ms,
        )
        return document

    def delete(self, project_id: UUID) -> None:
        self._projects.pop(project_id, None)
        self._documents.pop(project_id, None)

    def clear(self) -> None:
        self._projects.clear()
        self._documents.clear()


# Singleton instance
project_store = ProjectStore()
