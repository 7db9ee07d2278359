"""Edit guards for files rewritten during a release build.

A coordinator "checks out" a file for editing before it is modified and
releases it afterwards, the way a version control working copy requires
files to be opened for edit.
"""

import logging
import stat
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import ContextManager, Dict, Iterator, Protocol

logger = logging.getLogger(__name__)


class EditCoordinator(Protocol):
    """Grants exclusive edit access to a file for the duration of a block."""

    def edit(self, path: Path) -> ContextManager[Path]:
        ...


@dataclass
class _PathLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class LocalEditCoordinator:
    """Edit guard for plain working copies on the local filesystem.

    Holds a per-path lock while the file is being edited and makes the
    file writable by its owner before handing it out. A path's lock is
    dropped once no edit holds or waits on it.
    """

    def __init__(self) -> None:
        self._locks: Dict[Path, _PathLock] = {}
        self._registry_lock = threading.Lock()

    def _acquire_entry(self, path: Path) -> _PathLock:
        with self._registry_lock:
            entry = self._locks.setdefault(path, _PathLock())
            entry.users += 1
            return entry

    def _release_entry(self, path: Path, entry: _PathLock) -> None:
        with self._registry_lock:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[path]

    @contextmanager
    def edit(self, path: Path) -> Iterator[Path]:
        """Acquire the file for editing.

        The lock is released when the block exits, even if it raises.
        """
        resolved = Path(path).resolve()
        entry = self._acquire_entry(resolved)
        try:
            with entry.lock:
                if resolved.exists():
                    mode = resolved.stat().st_mode
                    if not mode & stat.S_IWUSR:
                        resolved.chmod(mode | stat.S_IWUSR)
                        logger.debug("Made file writable", extra={"path": str(resolved)})
                logger.debug("File checked out for edit", extra={"path": str(resolved)})
                try:
                    yield resolved
                finally:
                    logger.debug("File edit released", extra={"path": str(resolved)})
        finally:
            self._release_entry(resolved, entry)
