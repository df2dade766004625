"""
Scoped compute context for engine artifacts.

Long runs create thousands of fitted models (search candidates, CV fold models,
forward-selection candidates). Every component receives a ComputeContext and
opens a ``scope()`` around each unit of work; artifacts tracked inside the scope
are released when it exits, whether the unit succeeded or raised. Anything that
must outlive its scope (the promoted best model) is handed over with ``keep()``.
"""

import gc
import logging
import threading
import warnings
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Protocol, TypeVar

from hf_ml.exceptions import ResourceCleanupWarning

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Releasable(Protocol):
    def release(self) -> None: ...


class ComputeContext:
    """
    Tracks releasable engine artifacts per scope.

    Scopes nest and are per-thread, so forward-selection tasks running in a
    thread pool each release their own candidate models.

    Args:
        name: Label used in log messages
        collect_garbage: Run ``gc.collect()`` after each scope closes
    """

    def __init__(self, name: str = "hf_ml", collect_garbage: bool = True):
        self.name = name
        self.collect_garbage = collect_garbage
        self._local = threading.local()
        self._lock = threading.Lock()
        self._outstanding: list[Any] = []
        self.n_tracked = 0
        self.n_released = 0
        self.n_failed = 0

    def _scopes(self) -> list[list[Any]]:
        if not hasattr(self._local, "scopes"):
            self._local.scopes = []
        return self._local.scopes

    def track(self, obj: T) -> T:
        """Register an artifact for release when the innermost scope exits."""
        scopes = self._scopes()
        with self._lock:
            self.n_tracked += 1
            if scopes:
                scopes[-1].append(obj)
            else:
                self._outstanding.append(obj)
        return obj

    def keep(self, obj: T) -> T:
        """Detach an artifact from the innermost scope so it survives the scope exit.

        The artifact is moved to the enclosing scope (or the context itself), so it
        is still released eventually.
        """
        scopes = self._scopes()
        if not scopes:
            return obj
        current = scopes[-1]
        for i, tracked in enumerate(current):
            if tracked is obj:
                del current[i]
                break
        with self._lock:
            if len(scopes) > 1:
                scopes[-2].append(obj)
            else:
                self._outstanding.append(obj)
        return obj

    def release(self, obj: Any) -> None:
        """Release one artifact; failures are reported as ResourceCleanupWarning."""
        try:
            obj.release()
        except Exception as e:
            with self._lock:
                self.n_failed += 1
            warnings.warn(
                f"[{self.name}] could not release {type(obj).__name__}: {e}",
                ResourceCleanupWarning,
                stacklevel=2,
            )
            return
        with self._lock:
            self.n_released += 1

    @contextmanager
    def scope(self, label: str = "") -> Iterator["ComputeContext"]:
        """Open a release scope; tracked artifacts are released on exit."""
        scopes = self._scopes()
        frame: list[Any] = []
        scopes.append(frame)
        try:
            yield self
        finally:
            scopes.pop()
            for obj in reversed(frame):
                self.release(obj)
            if frame:
                logger.debug(f"[{self.name}] released {len(frame)} artifact(s) {label}".rstrip())
            if self.collect_garbage:
                gc.collect()

    @property
    def live_count(self) -> int:
        """Artifacts tracked but not yet released (all threads)."""
        return self.n_tracked - self.n_released - self.n_failed

    def close(self) -> None:
        """Release artifacts that were kept past every scope."""
        with self._lock:
            pending, self._outstanding = self._outstanding, []
        for obj in reversed(pending):
            self.release(obj)
        if self.live_count:
            warnings.warn(
                f"[{self.name}] {self.live_count} artifact(s) still live at close",
                ResourceCleanupWarning,
                stacklevel=2,
            )

    def __enter__(self) -> "ComputeContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
