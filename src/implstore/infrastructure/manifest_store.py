"""
implstore.infrastructure.manifest_store - Deployment Manifest Persistence
===========================================================================

This module provides durable, per-network storage of deployment manifests.
A manifest maps version fingerprints to DeploymentRecords for ONE network;
different networks never share a file, a lock, or a failure.

Architecture Context:

    ┌──────────────────┐   read(network)          ┌──────────────────────┐
    │  DeploymentCache │ ───────────────────────→ │    ManifestStore     │
    │                  │   locked_update(network, │                      │
    │                  │                fn)       │  <dir>/sepolia.json  │
    │                  │ ←─────────────────────── │  <dir>/sepolia.json.lock
    └──────────────────┘        Manifest          │  <dir>/mainnet.json  │
                                                  └──────────────────────┘

Consistency Guarantees:
    - locked_update() holds an exclusive OS-level advisory lock (flock on a
      `.lock` sidecar file) while it reads, applies `fn` and writes. Updates
      to the same network are serialized across coroutines, threads and
      separate processes sharing the directory.
    - Writes go to a temporary file in the same directory, are fsync'ed and
      then os.replace()'d into place. A crash mid-write leaves the previous
      manifest intact, so read() never needs the lock.
    - Bytes that do not parse as a manifest raise CorruptManifestError. The
      corrupt file is never overwritten.

Lifecycle:
    open → read / locked_update ... → close

    >>> async with FileManifestStore(".implstore") as store:
    ...     manifest = await store.read("sepolia")
    ...     manifest = await store.locked_update("sepolia", lambda m: m.with_record(r))

Storage Implementations:
    - FileManifestStore:     JSON files + flock, for real use
    - InMemoryManifestStore: dict of serialized manifests, for development/testing
"""

from __future__ import annotations

import asyncio
import fcntl
import inspect
import os
import re
import tempfile
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from pathlib import Path
from typing import IO, AsyncIterator, Awaitable, Callable, Optional, Union

import structlog
from pydantic import ValidationError

from implstore.core.exceptions import (
    ConfigurationError,
    CorruptManifestError,
    ManifestLockTimeoutError,
)
from implstore.core.models import MANIFEST_VERSION, Manifest


# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()


ManifestUpdate = Callable[[Manifest], Union[Manifest, Awaitable[Manifest]]]

_NETWORK_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
_LOCK_SUFFIX = ".lock"

# Threads parked in a blocking flock. Kept apart from the default executor,
# which the lock holder needs for its own reads, writes and release.
_LOCK_WAITERS = ThreadPoolExecutor(thread_name_prefix="implstore-manifest-lock")


def validate_network(network: str) -> str:
    """Ensure a network identifier is safe to use as a file name."""
    if not isinstance(network, str) or not _NETWORK_ID.match(network):
        raise ConfigurationError(
            message=f"Invalid network identifier: {network!r}",
            error_code="INVALID_NETWORK",
            details={"network": network},
        )
    return network


def parse_manifest(raw: Union[str, bytes], network: str, path: Optional[str] = None) -> Manifest:
    """Parse persisted manifest bytes, raising CorruptManifestError on any defect."""
    try:
        manifest = Manifest.model_validate_json(raw)
    except (ValidationError, ValueError) as exc:
        raise CorruptManifestError(
            message=f"Manifest for network '{network}' is corrupt: {exc}",
            network=network,
            path=path,
        ) from exc

    if manifest.manifest_version != MANIFEST_VERSION:
        raise CorruptManifestError(
            message=(
                f"Manifest for network '{network}' has unsupported version "
                f"{manifest.manifest_version!r}"
            ),
            network=network,
            path=path,
        )
    if manifest.network != network:
        raise CorruptManifestError(
            message=f"Manifest stored for '{network}' belongs to '{manifest.network}'",
            network=network,
            path=path,
        )
    return manifest


def serialize_manifest(manifest: Manifest) -> str:
    return manifest.model_dump_json(indent=2) + "\n"


async def _apply(fn: ManifestUpdate, current: Manifest) -> Manifest:
    result = fn(current)
    if inspect.isawaitable(result):
        result = await result
    if not isinstance(result, Manifest) or result.network != current.network:
        raise TypeError(
            f"manifest update for '{current.network}' must return a Manifest "
            f"for the same network, got {result!r}"
        )
    return result


# =============================================================================
# Abstract Base Class
# =============================================================================
class ManifestStore(ABC):
    """Abstract interface for per-network manifest persistence.

    Components should type-hint against this ABC. Manifests returned by
    read() are snapshots: they become stale as soon as any locked_update()
    commits, and must never be written back directly.
    """

    async def open(self) -> None:
        """Prepare the backing storage. Idempotent."""

    async def close(self) -> None:
        """Release backing resources. Idempotent."""

    async def __aenter__(self) -> "ManifestStore":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @abstractmethod
    async def read(self, network: str) -> Manifest:
        """Load the manifest for a network.

        Returns:
            The persisted manifest, or an empty one if none exists yet.

        Raises:
            CorruptManifestError: If persisted bytes do not parse.
        """

    @abstractmethod
    async def locked_update(self, network: str, fn: ManifestUpdate) -> Manifest:
        """Apply `fn` to the current manifest under an exclusive lock and persist.

        The lock is released on every exit path. If `fn` raises, nothing is
        written and the exception propagates.

        Args:
            network: The network whose manifest to update.
            fn: Receives the current manifest, returns the new one. May be
                a coroutine function.

        Returns:
            The manifest as persisted.

        Raises:
            CorruptManifestError: If the current manifest does not parse.
            ManifestLockTimeoutError: If a lock timeout is configured and exceeded.
        """


# =============================================================================
# File-Backed Implementation
# =============================================================================
def _open_lock_file(lock_path: Path) -> IO[str]:
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    return lock_path.open("a+", encoding="utf-8")


def _release_lock_file(handle: IO[str]) -> None:
    try:
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
    finally:
        handle.close()


def _try_lock(handle: IO[str]) -> bool:
    try:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
    except BlockingIOError:
        return False
    return True


def _atomic_write_text(path: Path, content: str) -> None:
    """Write to a temp file beside `path`, fsync, then os.replace into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(
        dir=str(path.parent),
        prefix=f".{path.name}.",
        suffix=".tmp",
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as tmp_handle:
            tmp_handle.write(content)
            tmp_handle.flush()
            os.fsync(tmp_handle.fileno())
        os.replace(tmp_path, str(path))
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


class FileManifestStore(ManifestStore):
    """Manifest store backed by one JSON file per network.

    Every process that points at the same directory shares the same cache
    and the same locks.

    Attributes:
        directory: Directory holding `<network>.json` and `<network>.json.lock`.
        lock_timeout_seconds: None waits for the lock indefinitely (the
            acquisition blocks a worker thread, it does not spin).
        lock_poll_interval_seconds: Retry interval when a timeout is set.
    """

    def __init__(
        self,
        directory: Union[str, Path],
        *,
        lock_timeout_seconds: Optional[float] = None,
        lock_poll_interval_seconds: float = 0.05,
    ) -> None:
        self._directory = Path(directory)
        self._lock_timeout = lock_timeout_seconds
        self._poll_interval = lock_poll_interval_seconds
        self._local_locks: dict[str, asyncio.Lock] = {}
        self._logger = logger.bind(component="file_manifest_store", directory=str(self._directory))

    @property
    def directory(self) -> Path:
        return self._directory

    def manifest_path(self, network: str) -> Path:
        return self._directory / f"{validate_network(network)}.json"

    async def open(self) -> None:
        await asyncio.to_thread(self._directory.mkdir, parents=True, exist_ok=True)

    # -------------------------------------------------------------------------
    # Read
    # -------------------------------------------------------------------------
    def _read_sync(self, network: str) -> Manifest:
        path = self.manifest_path(network)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return Manifest(network=network)
        return parse_manifest(raw, network, str(path))

    async def read(self, network: str) -> Manifest:
        return await asyncio.to_thread(self._read_sync, network)

    # -------------------------------------------------------------------------
    # Locking
    # -------------------------------------------------------------------------
    @asynccontextmanager
    async def _locked(self, network: str) -> AsyncIterator[None]:
        # Only one coroutine per network and store instance waits on flock.
        local = self._local_locks.setdefault(network, asyncio.Lock())
        async with local:
            async with self._os_locked(network):
                yield

    @asynccontextmanager
    async def _os_locked(self, network: str) -> AsyncIterator[None]:
        lock_path = self.manifest_path(network).with_suffix(".json" + _LOCK_SUFFIX)
        handle = await asyncio.to_thread(_open_lock_file, lock_path)

        try:
            if self._lock_timeout is None:
                await self._wait_for_lock(handle)
            else:
                await self._poll_for_lock(handle, network)
        except asyncio.CancelledError:
            # _wait_for_lock hands the handle to its worker thread on cancellation.
            if self._lock_timeout is not None:
                handle.close()
            raise
        except BaseException:
            handle.close()
            raise

        self._logger.debug("manifest_lock_acquired", network=network)
        try:
            yield
        finally:
            await asyncio.to_thread(_release_lock_file, handle)
            self._logger.debug("manifest_lock_released", network=network)

    async def _wait_for_lock(self, handle: IO[str]) -> None:
        loop = asyncio.get_running_loop()
        acquire = loop.run_in_executor(_LOCK_WAITERS, fcntl.flock, handle.fileno(), fcntl.LOCK_EX)
        try:
            await asyncio.shield(acquire)
        except asyncio.CancelledError:
            # The worker thread keeps waiting; let go of the lock once it lands.
            acquire.add_done_callback(lambda _: _release_lock_file(handle))
            raise

    async def _poll_for_lock(self, handle: IO[str], network: str) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._lock_timeout
        while not _try_lock(handle):
            if loop.time() >= deadline:
                raise ManifestLockTimeoutError(
                    message=f"Timed out waiting for the manifest lock of '{network}'",
                    network=network,
                    timeout_seconds=self._lock_timeout,
                )
            await asyncio.sleep(self._poll_interval)

    # -------------------------------------------------------------------------
    # Locked Update
    # -------------------------------------------------------------------------
    async def locked_update(self, network: str, fn: ManifestUpdate) -> Manifest:
        path = self.manifest_path(network)
        async with self._locked(network):
            current = await asyncio.to_thread(self._read_sync, network)
            updated = await _apply(fn, current)
            if updated == current and path.exists():
                return current
            await asyncio.to_thread(_atomic_write_text, path, serialize_manifest(updated))
            self._logger.info(
                "manifest_written",
                network=network,
                implementations=len(updated),
            )
            return updated


# =============================================================================
# In-Memory Implementation
# =============================================================================
class InMemoryManifestStore(ManifestStore):
    """In-memory manifest store for development and testing.

    Manifests are kept in their serialized form so that reads go through
    the same parsing (and corruption detection) as the file store. Locks
    are asyncio.Locks, so this store is NOT shared between processes.
    """

    def __init__(self) -> None:
        self._raw: dict[str, str] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._logger = logger.bind(component="in_memory_manifest_store")

    def set_raw(self, network: str, raw: str) -> None:
        """Replace the stored bytes for a network verbatim (used to simulate corruption)."""
        self._raw[validate_network(network)] = raw

    def get_raw(self, network: str) -> Optional[str]:
        return self._raw.get(network)

    async def read(self, network: str) -> Manifest:
        validate_network(network)
        raw = self._raw.get(network)
        if raw is None:
            return Manifest(network=network)
        return parse_manifest(raw, network)

    async def locked_update(self, network: str, fn: ManifestUpdate) -> Manifest:
        validate_network(network)
        lock = self._locks.setdefault(network, asyncio.Lock())
        async with lock:
            current = await self.read(network)
            updated = await _apply(fn, current)
            self._raw[network] = serialize_manifest(updated)
            self._logger.debug(
                "manifest_written",
                network=network,
                implementations=len(updated),
            )
            return updated
