"""
Per-project assembly locks.

Two assemblies racing on the same project's work orders interleave
non-deterministically, so at most one may be in flight per project.
"""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from codeweld.assembler.errors import ConcurrentAssemblyError

logger = logging.getLogger(__name__)


class ProjectLockRegistry:
    """Thread-safe registry of in-flight project assemblies."""

    def __init__(self):
        self._guard = threading.Lock()
        self._active: set[str] = set()

    def try_acquire(self, project_id: str) -> bool:
        with self._guard:
            if project_id in self._active:
                return False
            self._active.add(project_id)
            return True

    def release(self, project_id: str) -> None:
        with self._guard:
            self._active.discard(project_id)

    def is_locked(self, project_id: str) -> bool:
        with self._guard:
            return project_id in self._active

    @contextmanager
    def hold(self, project_id: str) -> Iterator[None]:
        """Hold the project lock for the duration of the block.

        Raises:
            ConcurrentAssemblyError: If the project is already being assembled
        """
        if not self.try_acquire(project_id):
            logger.warning(f"Rejected concurrent assembly for project {project_id}")
            raise ConcurrentAssemblyError(project_id)
        try:
            yield
        finally:
            self.release(project_id)


default_lock_registry = ProjectLockRegistry()
