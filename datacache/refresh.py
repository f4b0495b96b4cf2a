"""Refresh coordination.

Runs the loader for a stale cache and persists the result as a new snapshot,
either in the caller's control flow (blocking) or in a detached background
worker. A lock marker in the cache directory makes sure only one background
refresh per cache is in flight; a second caller that finds the lock defers
and keeps serving the previous snapshot.
"""

import os
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

from typing_extensions import Protocol

from rich.console import Console

from .errors import ConfigurationError
from .models.refresh import RefreshOutcome, RefreshStatus
from .storage import SnapshotStore, as_payload

# Same-second snapshots are published under the next free second
MAX_PUBLISH_ATTEMPTS = 60


class BackgroundExecutor(Protocol):
    """Runs a job detached from the caller, without a return channel."""

    @property
    def available(self) -> bool: ...

    def spawn(self, job: Callable[[], Any]) -> None: ...


class ForkExecutor:
    """Runs jobs in a detached, memory-isolated child process.

    Uses a double fork: the intermediate child is reaped right away and the
    grandchild runs the job, so the caller gets neither a handle to wait on
    nor a zombie process. The job's only way to report back is the
    filesystem.
    """

    @property
    def available(self) -> bool:
        """Check if the platform supports forking."""
        return hasattr(os, "fork") and sys.platform != "win32"

    def spawn(self, job: Callable[[], Any]) -> None:
        """Start the job in a detached process and return immediately.

        Args:
            job: Callable run in the worker process

        Raises:
            OSError: If the worker process could not be started
        """
        if not self.available:
            raise ConfigurationError("Background processing is not supported on this platform")

        # Avoid duplicated buffered output in the children
        sys.stdout.flush()
        sys.stderr.flush()

        pid = os.fork()
        if pid:
            _, status = os.waitpid(pid, 0)
            exit_code = os.waitstatus_to_exitcode(status)
            if exit_code != 0:
                raise OSError(f"Background worker failed to start (exit code {exit_code})")
            return

        exit_code = 1
        try:
            os.setsid()
            if os.fork():
                exit_code = 0
            else:
                job()
                exit_code = 0
        finally:
            os._exit(exit_code)


class ThreadExecutor:
    """Runs jobs on a thread pool.

    For hosts without fork. Jobs share memory with the caller but are still
    fire-and-forget: nothing is returned to the caller. Pool threads are not
    daemon threads, so the interpreter waits for a running refresh at exit.
    """

    def __init__(self, max_workers: int = 1):
        """Initialize thread executor.

        Args:
            max_workers: Maximum concurrent refresh threads
        """
        self.max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()

    @property
    def available(self) -> bool:
        return True

    def spawn(self, job: Callable[[], Any]) -> None:
        """Submit the job and return immediately."""
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_workers,
                    thread_name_prefix="datacache-refresh",
                )
            self._executor.submit(job)

    def shutdown(self, wait: bool = True) -> None:
        """Stop the executor, optionally waiting for running jobs."""
        with self._lock:
            if self._executor:
                self._executor.shutdown(wait=wait)
                self._executor = None


def default_executor() -> Optional[BackgroundExecutor]:
    """Get the background executor for this platform, or None."""
    executor = ForkExecutor()
    return executor if executor.available else None


class RefreshCoordinator:
    """Coordinates refreshes of one named cache."""

    def __init__(
        self,
        store: SnapshotStore,
        executor: Optional[BackgroundExecutor] = None,
        console: Optional[Console] = None,
    ):
        """Initialize refresh coordinator.

        Args:
            store: Snapshot store of the cache
            executor: Executor for background refreshes (None: blocking only)
            console: Console for user messages
        """
        self.store = store
        self.executor = executor
        self.console = console or Console(stderr=True)

    @property
    def supports_background(self) -> bool:
        """Check if background refreshes are possible."""
        return self.executor is not None and self.executor.available

    def is_refreshing(self) -> bool:
        """Check if a refresh holds the lock."""
        return self.store.is_locked()

    def refresh(
        self,
        loader: Callable[..., Any],
        *args: Any,
        background: bool = False,
        **kwargs: Any,
    ) -> RefreshOutcome:
        """Refresh the cache by running the loader.

        Args:
            loader: Function returning the values to cache
            *args: Positional arguments for the loader
            background: Run the refresh in a detached worker
            **kwargs: Keyword arguments for the loader

        Returns:
            Outcome of the attempt. Background refreshes return SPAWNED or
            DEFERRED without waiting for the loader.
        """
        created = datetime.now().replace(microsecond=0)

        if not background:
            # A blocking refresh always runs; it only takes the lock so that
            # background callers defer while it is loading.
            owns_lock = self.store.acquire_lock()
            return self._run(loader, args, kwargs, created, owns_lock, announce=True)

        if not self.supports_background:
            raise ConfigurationError("Background processing is not supported on this platform")

        if not self.store.acquire_lock():
            info = self.store.lock_info()
            age = info.age_seconds if info else 0.0
            self.console.print(
                "Data is being loaded by another process. "
                f"The process has been running for {age:.0f} seconds. "
                f"If this is an error delete {self.store.lock_path}"
            )
            return RefreshOutcome(status=RefreshStatus.DEFERRED, lock_age_seconds=age)

        try:
            self.executor.spawn(
                lambda: self._run(loader, args, kwargs, created, True, announce=False)
            )
        except BaseException:
            self.store.release_lock()
            raise

        return RefreshOutcome(status=RefreshStatus.SPAWNED, created=created)

    def _run(
        self,
        loader: Callable[..., Any],
        args: Tuple[Any, ...],
        kwargs: Dict[str, Any],
        created: datetime,
        owns_lock: bool,
        announce: bool,
    ) -> RefreshOutcome:
        """Load, persist and release the lock."""
        try:
            with open(self.store.log_path(created), "a", encoding="utf-8") as log_file:
                log = Console(file=log_file, width=120, markup=False, highlight=False)
                log.log(f"Loading data at {datetime.now():%Y-%m-%d %H:%M:%S}")

                try:
                    payload = as_payload(loader(*args, **kwargs))
                    snapshot, created = self._publish(payload, created)
                except Exception as e:
                    log.log(f"Loading data failed: {e!r}")
                    log.print_exception()
                    if announce:
                        self.console.print(f"[red]Loading data failed:[/red] {e}")
                    return RefreshOutcome(
                        status=RefreshStatus.FAILED, created=created, error=e
                    )

                log.log(f"Saved {len(payload)} value(s) to {snapshot.name}")
        finally:
            if owns_lock:
                self.store.release_lock()

        return RefreshOutcome(
            status=RefreshStatus.COMPLETED, created=created, snapshot=snapshot
        )

    def _publish(self, payload: Dict[str, Any], created: datetime) -> Tuple[Path, datetime]:
        """Write the snapshot without replacing one created in the same second.

        Returns:
            (snapshot path, creation time actually used)
        """
        for _ in range(MAX_PUBLISH_ATTEMPTS):
            try:
                return self.store.write(payload, created), created
            except FileExistsError:
                created += timedelta(seconds=1)
        raise FileExistsError(
            f"No free snapshot name for cache '{self.store.cache_name}' near {created}"
        )
