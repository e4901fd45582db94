"""
Preview Runtime — asyncio scheduling and network IO around the kernel.

  frame      — PreviewFrame, the single paint surface
  scheduler  — RenderScheduler (debounce, sequencing, skip rule, paint)
  transport  — LocalTransport / RemoteTransport (ws → HTTP → local)
  sync       — SyncChannel, the project-room websocket
  cache      — PreviewCache keyed by session
  engine     — PreviewEngine, the per-session facade
"""

from preview_engine.runtime.cache import MemoryCacheStorage, PreviewCache
from preview_engine.runtime.engine import PreviewEngine
from preview_engine.runtime.frame import PreviewFrame
from preview_engine.runtime.presenter import ErrorPresenter
from preview_engine.runtime.scheduler import RenderScheduler
from preview_engine.runtime.sync import SyncChannel
from preview_engine.runtime.transport import LocalTransport, RemoteTransport, TransportStrategy

__all__ = [
    "MemoryCacheStorage",
    "PreviewCache",
    "PreviewEngine",
    "PreviewFrame",
    "ErrorPresenter",
    "RenderScheduler",
    "SyncChannel",
    "LocalTransport",
    "RemoteTransport",
    "TransportStrategy",
]
