"""
Directory-based exclusive locks for teamwork.

A lock on resource ``R`` is the directory ``R.lock``. Creating a directory
either succeeds or fails with ``FileExistsError`` atomically, including on
network filesystems, so the process whose ``mkdir`` succeeds owns the lock.
The owner writes ``holder.json`` (owner id, pid, host, acquisition time)
inside the directory; other processes use it for reentrancy and for
reclaiming locks left behind by crashed or stalled holders.
"""

import json
import logging
import os
import shutil
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Optional, TypeVar, Union

from pydantic import ValidationError as PydanticValidationError

from ..config.settings import LockSettings
from ..errors import LockTimeoutError
from ..models.lock_holder import LockHolder
from ..utils.atomic_io import atomic_create_json, read_json_file

T = TypeVar("T")

Resource = Union[str, Path]

HOLDER_FILE = "holder.json"
LOCK_SUFFIX = ".lock"


def lock_path_for(resource: Resource) -> Path:
    """Lock directory guarding the given resource path."""
    return Path(f"{resource}{LOCK_SUFFIX}")


def pid_alive(pid: int) -> bool:
    """Best-effort check whether a local process id is running."""
    if pid <= 0:
        return False
    if pid == os.getpid():
        return True
    if os.name == "nt":
        # os.kill would terminate the process on Windows.
        return True
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


class LockManager:
    """Exclusive, reentrant, stale-aware locks over filesystem resources."""

    def __init__(self, settings: Optional[LockSettings] = None):
        self.settings = settings or LockSettings()
        self.logger = logging.getLogger(__name__)

    # --- Acquisition ---

    def acquire(
        self, resource: Resource, owner: str, timeout: Optional[float] = None
    ) -> bool:
        """
        Acquire the lock on a resource.

        Args:
            resource: Path of the resource to lock
            owner: Owner identifier; an owner already holding the lock
                re-acquires it immediately
            timeout: Seconds to keep polling (settings default when None)

        Returns:
            True if the lock is held by owner, False on timeout
        """
        return self._acquire(resource, owner, timeout) is not None

    def _acquire(
        self, resource: Resource, owner: str, timeout: Optional[float]
    ) -> Optional[bool]:
        """Returns True when a new marker was created, False on reentry, None on timeout."""
        if not owner:
            raise ValueError("owner must be a non-empty string")
        if timeout is None:
            timeout = self.settings.timeout_seconds
        lock_path = lock_path_for(resource)
        deadline = time.monotonic() + timeout

        while True:
            try:
                lock_path.mkdir()
            except FileExistsError:
                holder = self._read_holder(lock_path)
                if holder is not None and holder.owner == owner:
                    self.logger.debug(f"Reentrant acquire of {lock_path} by {owner}")
                    return False
                if self._is_stale(lock_path, holder):
                    self._reclaim(lock_path, holder, owner)
                    continue
            else:
                try:
                    self._write_holder(lock_path, owner)
                except FileNotFoundError:
                    # Marker was reclaimed before the holder file landed.
                    continue
                except FileExistsError:
                    # A reclaimed lock was restored over our fresh marker.
                    continue
                except OSError:
                    self._remove_lock_dir(lock_path)
                    raise
                self.logger.debug(f"Acquired {lock_path} for {owner}")
                return True

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self.logger.info(
                    f"Timed out acquiring {lock_path} for {owner} after {timeout:g}s"
                )
                return None
            time.sleep(min(self.settings.poll_interval_seconds, remaining))

    # --- Release ---

    def release(self, resource: Resource, owner: str) -> bool:
        """
        Release a lock held by owner.

        A missing lock is a no-op and a lock held by a different owner is left
        in place. Never raises for missing state.

        Returns:
            True if a marker was removed
        """
        lock_path = lock_path_for(resource)
        if not lock_path.exists():
            return False
        holder = self._read_holder(lock_path)
        if holder is not None and holder.owner != owner:
            self.logger.warning(
                f"Refusing to release {lock_path}: held by {holder.owner}, not {owner}"
            )
            return False
        return self._remove_lock_dir(lock_path)

    def force_release(self, resource: Resource) -> bool:
        """Remove a lock regardless of its holder."""
        lock_path = lock_path_for(resource)
        holder = self._read_holder(lock_path)
        removed = self._remove_lock_dir(lock_path)
        if removed:
            self.logger.warning(
                f"Force-released {lock_path}",
                extra={"json_data": {"lock": str(lock_path), "holder": _holder_dict(holder)}},
            )
        return removed

    # --- Scoped use ---

    @contextmanager
    def lock(
        self, resource: Resource, owner: str, timeout: Optional[float] = None
    ) -> Iterator[bool]:
        """
        Hold the lock for the duration of a with-block.

        Yields True when this scope created the marker. A reentrant scope
        leaves the marker to the outer scope that created it.

        Raises:
            LockTimeoutError: If the lock cannot be acquired in time
        """
        created = self._acquire(resource, owner, timeout)
        if created is None:
            effective = self.settings.timeout_seconds if timeout is None else timeout
            raise LockTimeoutError(str(resource), owner, effective)
        try:
            yield created
        finally:
            if created:
                self.release(resource, owner)

    def with_lock(
        self,
        resource: Resource,
        owner: str,
        fn: Callable[[], T],
        timeout: Optional[float] = None,
    ) -> T:
        """Run fn while holding the lock and return its result."""
        with self.lock(resource, owner, timeout):
            return fn()

    # --- Inspection ---

    def holder(self, resource: Resource) -> Optional[LockHolder]:
        """Current holder of the lock, or None if unlocked or unreadable."""
        return self._read_holder(lock_path_for(resource))

    def is_locked(self, resource: Resource) -> bool:
        return lock_path_for(resource).is_dir()

    def is_locked_by(self, resource: Resource, owner: str) -> bool:
        holder = self.holder(resource)
        return holder is not None and holder.owner == owner

    def is_stale(self, resource: Resource) -> bool:
        lock_path = lock_path_for(resource)
        if not lock_path.exists():
            return False
        return self._is_stale(lock_path, self._read_holder(lock_path))

    # --- Internals ---

    def _write_holder(self, lock_path: Path, owner: str) -> None:
        holder = LockHolder.for_current_process(owner)
        atomic_create_json(lock_path / HOLDER_FILE, holder.model_dump(mode="json"))

    def _read_holder(self, lock_path: Path) -> Optional[LockHolder]:
        try:
            holder = LockHolder.model_validate(read_json_file(lock_path / HOLDER_FILE))
            holder.age()
        except (OSError, json.JSONDecodeError, PydanticValidationError, ValueError):
            return None
        return holder

    def _is_stale(self, lock_path: Path, holder: Optional[LockHolder]) -> bool:
        threshold = self.settings.stale_after_seconds
        if holder is None:
            # Either mid-creation or abandoned; only the directory age can tell.
            try:
                age = time.time() - lock_path.stat().st_mtime
            except FileNotFoundError:
                return False
            return age > threshold
        if holder.age() > threshold:
            return True
        if self.settings.check_liveness and holder.is_local():
            return not pid_alive(holder.pid)
        return False

    def _reclaim(
        self, lock_path: Path, judged: Optional[LockHolder], reclaimer: str
    ) -> None:
        tombstone = lock_path.with_name(f"{lock_path.name}.stale.{uuid.uuid4().hex}")
        try:
            os.rename(lock_path, tombstone)
        except FileNotFoundError:
            return

        moved = self._read_holder(tombstone)
        if _holder_dict(moved) != _holder_dict(judged):
            # A fresh lock replaced the stale one between the check and the rename.
            try:
                os.rename(tombstone, lock_path)
            except OSError:
                self.logger.error(
                    f"Could not restore fresh lock {lock_path} after mistaken reclaim"
                )
            else:
                return

        self._remove_lock_dir(tombstone)
        self.logger.warning(
            f"Reclaimed stale lock {lock_path}",
            extra={
                "json_data": {
                    "lock": str(lock_path),
                    "reclaimed_by": reclaimer,
                    "holder": _holder_dict(judged),
                }
            },
        )

    def _remove_lock_dir(self, lock_path: Path) -> bool:
        try:
            shutil.rmtree(lock_path)
        except FileNotFoundError:
            return False
        return True


def _holder_dict(holder: Optional[LockHolder]) -> Optional[dict]:
    return holder.model_dump(mode="json") if holder is not None else None
