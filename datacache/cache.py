"""Disk-backed data cache.

Entry point for callers: returns the most recent snapshot of a cache and
refreshes it when the staleness policy says so. On platforms that support
background processing the refresh runs in a detached worker and the
previous snapshot is returned until that worker has finished.
"""

import inspect
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, List, Optional, Union

from rich.console import Console

from .errors import ConfigurationError, LoadError
from .frequencies import DEFAULT_STALE, StalenessPolicy, daily, get_frequency
from .inventory import StaleSpec, cache_info
from .models.refresh import RefreshStatus
from .models.snapshot import InventoryRecord, LockInfo
from .refresh import RefreshCoordinator, default_executor
from .storage import SnapshotStore, bind

_DEFAULT = object()


class DataCache:
    """A single named cache dedicated to one loader."""

    def __init__(
        self,
        cache_dir: Union[str, Path] = "cache",
        cache_name: str = "Cache",
        frequency: Union[str, StalenessPolicy] = daily,
        wait: bool = False,
        executor: Any = _DEFAULT,
        console: Optional[Console] = None,
        quiet: bool = False,
    ):
        """Initialize data cache.

        Args:
            cache_dir: Directory containing the cached data files
            cache_name: Name of the cache
            frequency: Staleness policy, or its name (daily, 6h, ...)
            wait: Always refresh in the foreground
            executor: Background executor (default: fork where supported,
                None to disable background refreshes)
            console: Console for user messages
            quiet: Suppress user messages
        """
        if not cache_name or not str(cache_name).strip():
            raise ConfigurationError("cache_name must not be empty")

        self.frequency = get_frequency(frequency)
        self.wait = wait
        self.console = console or Console(stderr=True, quiet=quiet)
        self.store = SnapshotStore(cache_dir, cache_name)

        if executor is _DEFAULT:
            executor = default_executor()
        self.coordinator = RefreshCoordinator(self.store, executor, self.console)

    @classmethod
    def from_config(cls, config: Any, **overrides: Any) -> "DataCache":
        """Build a cache from a loaded configuration.

        Args:
            config: Config instance (see datacache.config)
            **overrides: Constructor arguments taking precedence

        Returns:
            DataCache instance
        """
        options = {
            "cache_dir": config.cache.dir,
            "cache_name": config.cache.name,
            "frequency": config.cache.frequency,
            "wait": config.cache.wait,
            "quiet": config.output.quiet,
        }
        if not config.cache.background:
            options["executor"] = None
        options.update(overrides)
        return cls(**options)

    @property
    def cache_dir(self) -> Path:
        return self.store.cache_dir

    @property
    def cache_name(self) -> str:
        return self.store.cache_name

    def fetch(
        self,
        loader: Optional[Callable[..., Any]],
        *args: Any,
        envir: Any = None,
        **kwargs: Any,
    ) -> datetime:
        """Bind the most recent data into ``envir``, refreshing if stale.

        Args:
            loader: Function returning a mapping of named values to cache
            *args: Positional arguments passed to the loader
            envir: Namespace receiving the values (mapping or object);
                defaults to the caller's module globals
            **kwargs: Keyword arguments passed to the loader

        Returns:
            Creation time of the snapshot that was bound

        Raises:
            ConfigurationError: If the loader is missing
            LoadError: If the first ever load fails
        """
        if loader is None or not callable(loader):
            raise ConfigurationError(
                "Loader function is missing! This parameter defines a function to load data."
            )
        if envir is None:
            envir = inspect.currentframe().f_back.f_globals

        self.store.ensure_dir()
        records = cache_info(
            self.cache_dir, self.cache_name, stale=None, console=self.console
        )

        if not records or self.wait or not self.coordinator.supports_background:
            return self._fetch_blocking(loader, args, kwargs, records, envir)

        current = records[0]
        if self.frequency(current.created):
            self.coordinator.refresh(loader, *args, background=True, **kwargs)
            self.console.print("Loading more recent data, returning latest available.")

        bind(self.store.read(current.path), envir)
        return current.created

    def _fetch_blocking(self, loader, args, kwargs, records, envir) -> datetime:
        """Synchronous path: load now if there is no data or it is stale."""
        current = records[0] if records else None

        if current is None:
            if not self.coordinator.supports_background and not self.wait:
                self.console.print(
                    "No cached data found and background processing is not "
                    "supported. Loading initial data..."
                )
            else:
                self.console.print("No cached data found. Loading initial data...")
        elif self.frequency(current.created):
            self.console.print("Loading new data...")
        else:
            bind(self.store.read(current.path), envir)
            return current.created

        outcome = self.coordinator.refresh(loader, *args, **kwargs)

        if outcome.status == RefreshStatus.COMPLETED:
            bind(self.store.read(outcome.snapshot), envir)
            return outcome.created

        if current is None:
            raise LoadError(
                f"Loading initial data for cache '{self.cache_name}' failed: {outcome.error}",
                cache_name=self.cache_name,
            ) from outcome.error

        self.console.print(
            "[yellow]Warning:[/yellow] Refresh failed, returning data from "
            f"{current.created:%Y-%m-%d %H:%M:%S}"
        )
        bind(self.store.read(current.path), envir)
        return current.created

    def info(
        self,
        units: str = "mins",
        stale: StaleSpec = DEFAULT_STALE,
    ) -> List[InventoryRecord]:
        """List the snapshots of this cache, most recent first."""
        return cache_info(
            self.cache_dir, self.cache_name, units=units, stale=stale, console=self.console
        )

    def lock_info(self) -> Optional[LockInfo]:
        """Describe the refresh lock, if a refresh is in progress."""
        return self.store.lock_info()

    def unlock(self) -> bool:
        """Remove an orphaned refresh lock.

        Returns:
            True if a lock was removed
        """
        if not self.store.is_locked():
            return False
        self.store.release_lock()
        return True


def data_cache(
    fun: Optional[Callable[..., Any]] = None,
    *args: Any,
    frequency: Union[str, StalenessPolicy] = daily,
    cache_dir: Union[str, Path] = "cache",
    cache_name: str = "Cache",
    envir: Any = None,
    wait: bool = False,
    executor: Any = _DEFAULT,
    console: Optional[Console] = None,
    **kwargs: Any,
) -> datetime:
    """Retrieve data from a data cache.

    Checks whether a fresh snapshot is available. If not, ``fun`` is called to
    retrieve more up-to-date data. Where the platform supports forking the
    refresh happens in the background and the latest snapshot is returned
    until that background process completes.

    ``fun`` must return a mapping of named values; they are bound into
    ``envir`` (the caller's module globals by default). Any other return value
    is bound under the name ``data``.

    Example::

        def load_weather(station="ALB"):
            return {f"weather_{station}": download(station)}

        data_cache(load_weather, frequency=hourly, cache_name="Weather")
        print(weather_ALB)

    Args:
        fun: Function used to load the data
        *args: Positional arguments passed to ``fun``
        frequency: How often the cache goes stale
        cache_dir: Directory containing the cached data files
        cache_name: Name of the cache
        envir: Namespace into which the data will be bound
        wait: Wait until stale data is refreshed
        executor: Background executor override
        console: Console for user messages
        **kwargs: Keyword arguments passed to ``fun``

    Returns:
        Creation time of the data that was bound
    """
    if fun is None:
        raise ConfigurationError(
            "Loader function is missing! This parameter defines a function to load data."
        )
    if envir is None:
        envir = inspect.currentframe().f_back.f_globals

    cache = DataCache(
        cache_dir=cache_dir,
        cache_name=cache_name,
        frequency=frequency,
        wait=wait,
        executor=executor,
        console=console,
    )
    return cache.fetch(fun, *args, envir=envir, **kwargs)
