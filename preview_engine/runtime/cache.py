"""
PreviewCache — last good document per session key.

A cache hit on mount paints instantly with no compile and no network. Every
successful paint overwrites the entry. Storage is pluggable; the default
lives in memory for the lifetime of the browsing context.
"""

from __future__ import annotations

import json
import logging

from preview_engine.kernel.types import CompiledDocument, PreviewSession

logger = logging.getLogger(__name__)


class CacheStorage:
    """String key/value store, the shape of a browser sessionStorage."""

    def get(self, key: str) -> str | None:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


class MemoryCacheStorage(CacheStorage):
    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __len__(self) -> int:
        return len(self._data)


class PreviewCache:
    def __init__(self, storage: CacheStorage | None = None):
        self.storage = storage if storage is not None else MemoryCacheStorage()

    def restore(self, session: PreviewSession) -> CompiledDocument | None:
        raw = self.storage.get(session.session_key)
        if raw is None:
            return None
        try:
            return CompiledDocument.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("cache: dropping unreadable entry %s: %s", session.session_key, e)
            self.storage.delete(session.session_key)
            return None

    def store(self, session: PreviewSession, document: CompiledDocument) -> None:
        self.storage.set(session.session_key, json.dumps(document.to_dict()))

    def evict(self, session: PreviewSession) -> None:
        self.storage.delete(session.session_key)
