"""
Preview Kernel — File tree flattening

Pure functions: hierarchical FileNode tree → FlatFileMap.
Directories contribute nothing. Files always contribute, with missing
content normalized to "" so compilers can tell an empty file from a
missing one.
"""

from __future__ import annotations

from collections.abc import Iterable

from preview_engine.kernel.types import FileNode, FlatFileMap


def flatten_tree(nodes: FileNode | Iterable[FileNode], prefix: str = "") -> FlatFileMap:
    """
    Flatten a tree (a single root or a list of roots) into path → content.
    Paths are "/"-joined node names. When siblings share a name the later
    node wins.
    """
    if isinstance(nodes, FileNode):
        nodes = [nodes]

    files: FlatFileMap = {}
    for node in nodes:
        path = f"{prefix}/{node.name}" if prefix else node.name
        if node.is_file:
            files[path] = node.content or ""
        else:
            files.update(flatten_tree(node.children, path))
    return files


def apply_override(
    files: FlatFileMap,
    active_file: str | None = None,
    active_file_content: str | None = None,
) -> FlatFileMap:
    """Return a copy of files with the editor's unsaved buffer applied."""
    result = dict(files)
    if active_file and active_file_content is not None:
        result[active_file] = active_file_content
    return result


def changed_paths(old: FlatFileMap, new: FlatFileMap) -> list[str]:
    """Paths that are new or whose content differs, sorted. Deletions are not reported."""
    return sorted(path for path, content in new.items() if old.get(path) != content)
