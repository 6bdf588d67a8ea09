"""
Process-wide shared state.

One AppState is built per client and handed to every component constructor.
Each field has a single writer:

- ``session``: AuthService
- ``folders``: FolderCache (AuthService only clears it on logout)
- ``folder_sequence``: FolderCache; numbers fetches and invalidations so that
  cached entries stay comparable across FolderCache instances
- ``uploads``: UploadOrchestrator
- ``errors``: ErrorReporter
"""

import itertools
from dataclasses import dataclass, field

from bulgur_sync.core.cache import CacheEntry, CacheKey, LRUCache
from bulgur_sync.core.events import EventBus
from bulgur_sync.exceptions import BError
from bulgur_sync.models.auth import Session
from bulgur_sync.models.storage import UploadTask


@dataclass(kw_only=True)
class AppState:
    session: Session = field(default_factory=Session)
    folders: LRUCache[CacheKey, CacheEntry] = field(default_factory=LRUCache)
    folder_sequence: "itertools.count[int]" = field(default_factory=lambda: itertools.count(1))
    uploads: dict[str, UploadTask] = field(default_factory=dict)
    errors: dict[str, BError] = field(default_factory=dict)
    events: EventBus = field(default_factory=EventBus)

    @classmethod
    def create(cls, *, site: str | None = None, folder_cache_max_size: int = 256) -> "AppState":
        return cls(
            session=Session(site=site),
            folders=LRUCache(folder_cache_max_size),
        )
