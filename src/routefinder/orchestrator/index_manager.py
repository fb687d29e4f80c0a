from __future__ import annotations

import errno
import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Optional

from routefinder.config import Settings
from routefinder.domain.models import Endpoint, FileCacheEntry
from routefinder.errors import IndexBuildError
from routefinder.extractors.spring.parser import SpringEndpointParser
from routefinder.repo.scanner import scan_source_files
from routefinder.search.engine import SearchEngine
from routefinder.store.file_cache import FileCache
from routefinder.store.index_store import IndexStore

logger = logging.getLogger(__name__)

IndexListener = Callable[[int], None]
FileProvider = Callable[[], Iterable[str]]


class IndexState(str, Enum):
    IDLE = "idle"
    BUILDING = "building"
    UPDATING_FILE = "updating_file"


class _Outcome(str, Enum):
    CACHED = "cached"
    PARSED = "parsed"
    MISSING = "missing"


@dataclass(frozen=True)
class _FileResult:
    path: str
    outcome: _Outcome
    last_modified: int = 0
    endpoints: list[Endpoint] = field(default_factory=list)


@dataclass(frozen=True)
class BuildResult:
    files_total: int = 0
    files_parsed: int = 0
    files_cached: int = 0
    files_removed: int = 0
    total_endpoints: int = 0
    indexed_files: int = 0
    cancelled: bool = False
    skipped: bool = False  # rejected because another build/update was running


def normalize_path(path: str | Path) -> str:
    return str(Path(path).expanduser().resolve())


class IndexManager:
    """
    Owns the file cache and the in-memory index for one source root.

    Builds run files through a bounded thread pool in batches: workers stat, read
    and parse; only the calling thread commits results. While a build runs,
    single-file updates and removals are no-ops and the build's closing
    notification is the signal to re-read.
    """

    def __init__(
        self,
        root: Path,
        settings: Optional[Settings] = None,
        parser: Optional[SpringEndpointParser] = None,
        file_provider: Optional[FileProvider] = None,
        cache: Optional[FileCache] = None,
        search_engine: Optional[SearchEngine] = None,
    ):
        self.root = Path(root).expanduser().resolve()
        self.settings = settings if settings is not None else Settings()
        self.parser = (
            parser if parser is not None else SpringEndpointParser(use_prefilter=self.settings.use_prefilter)
        )
        self._file_provider = file_provider if file_provider is not None else self._scan_root
        self._cache = cache if cache is not None else FileCache(self.settings.cache_path_for_root(self.root))
        self._store = IndexStore()
        self._search = search_engine if search_engine is not None else SearchEngine()

        self._listeners: list[IndexListener] = []
        self._state = IndexState.IDLE
        self._active_updates = 0
        self._state_lock = threading.Lock()
        self._commit_lock = threading.RLock()

        if self.settings.enable_cache:
            self._restore_from_cache()
        else:
            logger.info("Endpoint cache disabled")

    # ----------------------------
    # state gate
    # ----------------------------

    @property
    def state(self) -> IndexState:
        return self._state

    @property
    def is_building(self) -> bool:
        return self._state is IndexState.BUILDING

    def _begin_build(self) -> bool:
        with self._state_lock:
            if self._state is not IndexState.IDLE:
                return False
            self._state = IndexState.BUILDING
            return True

    def _end_build(self) -> None:
        with self._state_lock:
            self._state = IndexState.IDLE

    def _begin_update(self) -> bool:
        with self._state_lock:
            if self._state is IndexState.BUILDING:
                return False
            self._active_updates += 1
            self._state = IndexState.UPDATING_FILE
            return True

    def _end_update(self) -> None:
        with self._state_lock:
            self._active_updates -= 1
            if self._active_updates == 0:
                self._state = IndexState.IDLE

    # ----------------------------
    # notifications
    # ----------------------------

    def on_index_changed(self, listener: IndexListener) -> None:
        self._listeners.append(listener)

    def remove_index_listener(self, listener: IndexListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        count = self.get_total_endpoints_count()
        for listener in list(self._listeners):
            try:
                listener(count)
            except Exception:
                logger.warning("Index listener %r failed", listener, exc_info=True)

    # ----------------------------
    # cache
    # ----------------------------

    @property
    def cache_path(self) -> Optional[Path]:
        return self._cache.path

    def _restore_from_cache(self) -> None:
        self._cache.load()
        with self._commit_lock:
            for path, entry in self._cache.items():
                if entry.endpoints:
                    self._store.set(path, entry.endpoints)
        logger.info("Restored %d files from cache", len(self._store))

    def _save_cache(self) -> None:
        if self.settings.enable_cache:
            with self._commit_lock:
                self._cache.save()

    def clear_cache_and_rebuild(self, cancel_token: Optional[threading.Event] = None) -> BuildResult:
        if self._state is not IndexState.IDLE:
            logger.warning("Cannot clear the cache while the index is %s", self._state.value)
            return BuildResult(skipped=True)

        logger.info("Clearing endpoint cache and rebuilding index")
        with self._commit_lock:
            self._store.clear()
            self._cache.clear()
        self._cache.delete_artifact()
        return self.build_index(cancel_token=cancel_token)

    # ----------------------------
    # build
    # ----------------------------

    def _scan_root(self) -> list[str]:
        return scan_source_files(
            self.root,
            include_globs=self.settings.include_globs,
            exclude_globs=self.settings.exclude_globs,
        )

    def _candidate_files(self, files: Optional[Iterable[str]]) -> list[str]:
        source = files if files is not None else self._file_provider()
        seen: set[str] = set()
        out: list[str] = []
        for p in source or []:
            key = normalize_path(p)
            if key in seen:
                continue
            seen.add(key)
            out.append(key)
        return out

    def build_index(
        self,
        files: Optional[Iterable[str]] = None,
        cancel_token: Optional[threading.Event] = None,
    ) -> BuildResult:
        """
        Index `files` (or the configured provider's files), reusing cache entries
        whose stored mtime is not older than the file's.

        Cancellation is checked between batches; whatever was committed stays.
        A complete provider-driven build also drops entries for files that are no
        longer listed.
        """
        if not self._begin_build():
            logger.warning("Index build already in progress (state=%s). Skipping new request.", self._state.value)
            return BuildResult(skipped=True)

        parsed = cached = removed = 0
        cancelled = False
        candidates: list[str] = []
        logger.info("Starting index build for %s", self.root)
        try:
            candidates = self._candidate_files(files)
            batch_size = self.settings.batch_size
            logger.info("Found %d candidate files, batch size %d", len(candidates), batch_size)

            with ThreadPoolExecutor(max_workers=batch_size, thread_name_prefix="routefinder") as pool:
                for start in range(0, len(candidates), batch_size):
                    if cancel_token is not None and cancel_token.is_set():
                        logger.info("Index build cancelled after %d of %d files", start, len(candidates))
                        cancelled = True
                        break

                    batch = candidates[start : start + batch_size]
                    snapshots = [self._cache.get(p) if self.settings.enable_cache else None for p in batch]
                    for result in pool.map(self._examine, batch, snapshots):
                        self._commit(result)
                        if result.outcome is _Outcome.PARSED:
                            parsed += 1
                        elif result.outcome is _Outcome.CACHED:
                            cached += 1
                        else:
                            removed += 1

            # the provider lists the whole tree, so anything else still tracked is gone
            if files is None and not cancelled:
                removed += self._prune_untracked(candidates)
        except Exception as exc:
            logger.exception("Index build failed")
            raise IndexBuildError(f"index build failed for {self.root}: {exc}") from exc
        finally:
            try:
                self._save_cache()
            finally:
                self._end_build()

        total = self.get_total_endpoints_count()
        logger.info(
            "Index build %s. %d endpoints in %d files; parsed %d, cached %d, removed %d.",
            "cancelled" if cancelled else "complete",
            total,
            len(self._store),
            parsed,
            cached,
            removed,
        )
        if total == 0 and candidates and not cancelled:
            logger.warning(
                "No endpoints found in %d files. Check for Spring controller or Feign client annotations.",
                len(candidates),
            )
        self._notify()
        return BuildResult(
            files_total=len(candidates),
            files_parsed=parsed,
            files_cached=cached,
            files_removed=removed,
            total_endpoints=total,
            indexed_files=len(self._store),
            cancelled=cancelled,
        )

    def _examine(self, path: str, cached: Optional[FileCacheEntry], force: bool = False) -> _FileResult:
        """Worker: decide freshness and parse if needed. Never touches shared maps."""
        try:
            mtime = os.stat(path).st_mtime_ns
        except OSError as exc:
            _log_access_error(path, exc)
            return _FileResult(path, _Outcome.MISSING)

        if not force and cached is not None and cached.last_modified >= mtime:
            return _FileResult(path, _Outcome.CACHED, cached.last_modified, list(cached.endpoints))

        try:
            endpoints = self.parser.parse_file(Path(path))
        except OSError as exc:
            _log_access_error(path, exc)
            return _FileResult(path, _Outcome.MISSING)
        return _FileResult(path, _Outcome.PARSED, mtime, endpoints)

    def _commit(self, result: _FileResult) -> None:
        with self._commit_lock:
            if result.outcome is _Outcome.MISSING:
                self._store.remove(result.path)
                self._cache.remove(result.path)
                return
            if result.outcome is _Outcome.PARSED:
                self._cache.put(
                    result.path,
                    FileCacheEntry(last_modified=result.last_modified, endpoints=result.endpoints),
                )
            self._store.set(result.path, result.endpoints)

    def _prune_untracked(self, candidates: list[str]) -> int:
        """Drop entries for files the provider no longer lists. Returns how many were dropped."""
        keep = set(candidates)
        with self._commit_lock:
            tracked = set(self._store.files())
            tracked.update(path for path, _ in self._cache.items())
            stale = sorted(tracked - keep)
            for path in stale:
                self._store.remove(path)
                self._cache.remove(path)
        if stale:
            logger.info("Dropped %d files no longer present under %s", len(stale), self.root)
        return len(stale)

    # ----------------------------
    # incremental updates
    # ----------------------------

    def update_file(self, path: str | Path) -> Optional[int]:
        """
        Re-parse one file unconditionally. Returns its endpoint count, or None when
        skipped because a build is running.
        """
        key = normalize_path(path)
        if not self._begin_update():
            logger.info("Index build in progress. Update for %s skipped, the build will pick it up.", key)
            return None
        try:
            result = self._examine(key, None, force=True)
            self._commit(result)
        finally:
            self._end_update()
        self._notify()
        return len(result.endpoints)

    def remove_file(self, path: str | Path) -> bool:
        key = normalize_path(path)
        if not self._begin_update():
            logger.info("Index build in progress, removal of %s skipped.", key)
            return False
        try:
            with self._commit_lock:
                existed = self._store.remove(key)
                self._cache.remove(key)
        finally:
            self._end_update()
        if existed:
            logger.info("Removed %s from index", key)
            self._notify()
        return existed

    # ----------------------------
    # reads
    # ----------------------------

    def get_endpoints_for_file(self, path: str | Path) -> Optional[list[Endpoint]]:
        return self._store.get(normalize_path(path))

    def get_all_endpoints(self) -> list[Endpoint]:
        with self._commit_lock:
            return self._store.snapshot()

    def get_total_endpoints_count(self) -> int:
        with self._commit_lock:
            return self._store.total_count()

    def search(self, query: str) -> list[Endpoint]:
        if self.is_building:
            logger.warning("Search executed while the index is still building; results may be incomplete")
        return self._search.search(query, self.get_all_endpoints())


def _log_access_error(path: str, exc: OSError) -> None:
    # vanished files are routine during renames and deletions
    if exc.errno == errno.ENOENT:
        logger.debug("File disappeared before indexing: %s", path)
    else:
        logger.warning("Cannot read %s: %s", path, exc)
