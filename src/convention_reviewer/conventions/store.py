"""
Convention Store

Async adapters for persisted conventions and learning runs. Per-repository
handles are cached in an explicit map keyed by repository name; writes for
one repository are serialized behind that repository's lock.
"""

import asyncio
import copy
import json
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..models.convention import Convention, ConventionStats, LearningRun, utc_now_iso


logger = logging.getLogger(__name__)


class ConventionStoreError(Exception):
    """Convention store related errors"""
    pass


@dataclass
class RepositoryHandle:
    """Cached state of one repository's conventions"""
    repository: str
    active: Dict[str, Convention] = field(default_factory=dict)
    history: List[Convention] = field(default_factory=list)
    runs: Dict[str, LearningRun] = field(default_factory=dict)
    last_learned: Optional[str] = None
    _lock: Optional[asyncio.Lock] = field(default=None, repr=False, compare=False)
    _lock_loop: Optional[asyncio.AbstractEventLoop] = field(default=None, repr=False, compare=False)

    @property
    def write_lock(self) -> asyncio.Lock:
        """Write lock of the running event loop; a new loop gets a new lock"""
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    def snapshot(self) -> Tuple:
        return (
            dict(self.active),
            list(self.history),
            {run_id: copy.copy(run) for run_id, run in self.runs.items()},
            self.last_learned,
        )

    def restore(self, snapshot: Tuple) -> None:
        self.active, self.history, self.runs, self.last_learned = snapshot

    def conventions(self) -> List[Convention]:
        return list(self.active.values())

    def add(self, convention: Convention) -> None:
        """Add a convention, superseding an active one with the same rule key"""
        for existing_id, existing in list(self.active.items()):
            if existing.dedup_key == convention.dedup_key:
                del self.active[existing_id]
                self.history.append(existing)
        self.active[convention.id] = convention


class ConventionStore(ABC):
    """
    Store adapter contract consumed by the review core.

    Handles are created lazily on first use of a repository and reused
    afterwards; concurrent readers share the cached handle.
    """

    def __init__(self):
        self._handles: Dict[str, RepositoryHandle] = {}

    async def _handle(self, repository: str) -> RepositoryHandle:
        if not repository:
            raise ConventionStoreError("Repository name is required")
        handle = self._handles.get(repository)
        if handle is None:
            handle = await self._open(repository)
            # Another coroutine may have opened it while we awaited.
            handle = self._handles.setdefault(repository, handle)
        return handle

    @abstractmethod
    async def _open(self, repository: str) -> RepositoryHandle:
        """Create the handle for a repository"""

    async def _flush(self, handle: RepositoryHandle) -> None:
        """Persist a handle after a write; no-op for in-memory stores"""

    @asynccontextmanager
    async def _writing(self, handle: RepositoryHandle) -> AsyncIterator[RepositoryHandle]:
        """
        Mutate a handle under its write lock and persist it on exit.

        The handle is rolled back to its prior state when the body or the
        flush raises, so the cache never holds unpersisted changes.
        """
        async with handle.write_lock:
            snapshot = handle.snapshot()
            try:
                yield handle
                await self._flush(handle)
            except BaseException:
                handle.restore(snapshot)
                raise

    def cached_repositories(self) -> List[str]:
        return sorted(self._handles)

    async def get_all_conventions(self, repository: str) -> List[Convention]:
        handle = await self._handle(repository)
        return handle.conventions()

    async def get_conventions_by_category(self, repository: str, category: str) -> List[Convention]:
        handle = await self._handle(repository)
        return [c for c in handle.conventions() if c.category == category]

    async def add_conventions(
        self,
        repository: str,
        conventions: List[Convention],
        run_id: Optional[str] = None,
    ) -> int:
        """
        Store conventions for a repository.

        Args:
            repository: Repository name (owner/repo)
            conventions: Conventions to add
            run_id: Learning run that produced them, if any

        Returns:
            Number of conventions stored
        """
        handle = await self._handle(repository)
        async with self._writing(handle):
            for convention in conventions:
                handle.add(convention)

        logger.info(f"Stored {len(conventions)} conventions for {repository} (run: {run_id})")
        return len(conventions)

    async def start_learning_run(self, repository: str) -> str:
        handle = await self._handle(repository)
        run = LearningRun.start(repository)
        async with self._writing(handle):
            handle.runs[run.id] = run
        logger.info(f"Started learning run {run.id} for {repository}")
        return run.id

    async def complete_learning_run(
        self,
        repository: str,
        run_id: str,
        conventions_found: int,
        conventions_stored: int,
    ) -> None:
        handle = await self._handle(repository)
        async with self._writing(handle):
            run = self._get_run(handle, run_id)
            run.status = "completed"
            run.completed_at = utc_now_iso()
            run.conventions_found = conventions_found
            run.conventions_stored = conventions_stored
            handle.last_learned = run.completed_at
        logger.info(f"Completed learning run {run_id}: {conventions_stored}/{conventions_found} stored")

    async def fail_learning_run(self, repository: str, run_id: str, error_message: str) -> None:
        handle = await self._handle(repository)
        async with self._writing(handle):
            run = self._get_run(handle, run_id)
            run.status = "failed"
            run.completed_at = utc_now_iso()
            run.error = error_message
        logger.warning(f"Learning run {run_id} failed: {error_message}")

    async def get_learning_run(self, repository: str, run_id: str) -> LearningRun:
        handle = await self._handle(repository)
        return self._get_run(handle, run_id)

    async def get_stats(self, repository: str) -> ConventionStats:
        handle = await self._handle(repository)
        by_category: Dict[str, int] = {}
        for convention in handle.conventions():
            by_category[convention.category] = by_category.get(convention.category, 0) + 1
        return ConventionStats(
            conventions=len(handle.active),
            by_category=by_category,
            last_learned=handle.last_learned,
        )

    @staticmethod
    def _get_run(handle: RepositoryHandle, run_id: str) -> LearningRun:
        try:
            return handle.runs[run_id]
        except KeyError:
            raise ConventionStoreError(f"Unknown learning run: {run_id}")


class InMemoryConventionStore(ConventionStore):
    """Store kept entirely in process memory"""

    def __init__(self, seed: Optional[Dict[str, List[Convention]]] = None):
        super().__init__()
        self._seed = seed or {}

    async def _open(self, repository: str) -> RepositoryHandle:
        handle = RepositoryHandle(repository=repository)
        for convention in self._seed.get(repository, []):
            handle.add(convention)
        return handle


class _StoredRepository(BaseModel):
    """On-disk document for one repository"""
    model_config = ConfigDict(extra="ignore")

    repository: str
    conventions: List[dict] = Field(default_factory=list)
    history: List[dict] = Field(default_factory=list)
    learning_runs: List[dict] = Field(default_factory=list)
    last_learned: Optional[str] = None


class JsonFileConventionStore(ConventionStore):
    """
    Store persisting one JSON document per repository.

    Documents live under ``base_dir`` as ``<owner>__<repo>.json``.
    """

    def __init__(self, base_dir: str):
        super().__init__()
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _path_for(self, repository: str) -> Path:
        safe_name = repository.replace("/", "__").replace("\\", "__")
        return self.base_dir / f"{safe_name}.json"

    async def _open(self, repository: str) -> RepositoryHandle:
        path = self._path_for(repository)
        handle = RepositoryHandle(repository=repository)
        if not path.exists():
            logger.info(f"No stored conventions for {repository}, starting fresh")
            return handle

        try:
            raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
            document = _StoredRepository.model_validate(json.loads(raw))
            handle.active = {c["id"]: Convention.from_dict(c) for c in document.conventions}
            handle.history = [Convention.from_dict(c) for c in document.history]
            handle.runs = {r["id"]: LearningRun(**r) for r in document.learning_runs}
            handle.last_learned = document.last_learned
        except (OSError, ValueError, KeyError, TypeError, ValidationError) as e:
            logger.error(f"Failed to load conventions from {path}: {e}")
            raise ConventionStoreError(f"Failed to load conventions for {repository}: {e}")

        logger.info(f"Loaded {len(handle.active)} conventions for {repository}")
        return handle

    async def _flush(self, handle: RepositoryHandle) -> None:
        document = _StoredRepository(
            repository=handle.repository,
            conventions=[c.to_dict() for c in handle.active.values()],
            history=[c.to_dict() for c in handle.history],
            learning_runs=[r.to_dict() for r in handle.runs.values()],
            last_learned=handle.last_learned,
        )
        path = self._path_for(handle.repository)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            await asyncio.to_thread(
                tmp_path.write_text,
                json.dumps(document.model_dump(), indent=2, ensure_ascii=False),
                encoding="utf-8",
            )
            await asyncio.to_thread(tmp_path.replace, path)
        except OSError as e:
            logger.error(f"Failed to write conventions to {path}: {e}")
            raise ConventionStoreError(f"Failed to persist conventions: {e}")
