"""PTx Build - Working directory context and build lock

The working directory holds the player source, tune.inc, tunes/ and build/.
It is passed explicitly to every pipeline step instead of relying on the
process working directory.
"""
import os
import json
import logging
import tempfile
from datetime import datetime
from typing import List

from .constants import (PLAYER_ASM, TUNE_INC, TUNES_DIR, BUILD_DIR, LOCK_FILE,
                        BIN_EXT, IHX_EXT, ALT_IHX_EXT)
from .errors import BuildLocked

logger = logging.getLogger("ptx_build.workspace")


# =============================================================================
# WORKING DIRECTORY
# =============================================================================

class Workspace:
    """Paths inside a player working directory."""

    def __init__(self, root: str):
        self.root = os.path.abspath(root)
        self.asm_path = os.path.join(self.root, PLAYER_ASM)
        self.inc_path = os.path.join(self.root, TUNE_INC)
        self.tunes_dir = os.path.join(self.root, TUNES_DIR)
        self.build_dir = os.path.join(self.root, BUILD_DIR)
        self.lock_path = os.path.join(self.root, LOCK_FILE)

    def __repr__(self):
        return f"Workspace({self.root!r})"

    def path(self, relative: str) -> str:
        """Resolve a path against the working directory (absolute paths pass through)."""
        return os.path.join(self.root, relative)

    def init_build_dir(self):
        os.makedirs(self.build_dir, exist_ok=True)

    # Build artifacts, relative to the working directory

    def bin_path(self, base: str) -> str:
        return os.path.join(BUILD_DIR, base + BIN_EXT)

    def ihx_path(self, base: str) -> str:
        return os.path.join(BUILD_DIR, base + IHX_EXT)

    def alt_ihx_path(self, base: str) -> str:
        return os.path.join(BUILD_DIR, base + ALT_IHX_EXT)

    def artifact_paths(self, base: str) -> List[str]:
        """All names a build of ``base`` may leave behind."""
        return [self.bin_path(base), self.ihx_path(base), self.alt_ihx_path(base)]


# =============================================================================
# BUILD LOCKING
# =============================================================================

class BuildLock:
    """Advisory lock file rejecting concurrent builds in one working directory.

    Usable as a context manager; raises BuildLocked when another live
    process holds the lock.
    """

    def __init__(self, workspace: Workspace):
        self.lock_path = workspace.lock_path
        self.locked = False
        self.pid = os.getpid()

    def acquire(self):
        """Take the lock, removing a stale one left by a dead process."""
        if os.path.exists(self.lock_path):
            try:
                with open(self.lock_path, 'r') as f:
                    data = json.load(f)
                old_pid = int(data.get('pid', 0))
            except (json.JSONDecodeError, ValueError, TypeError, AttributeError, OSError):
                logger.info("Removing corrupt lock file")
                old_pid = 0

            if old_pid != self.pid and self._is_process_running(old_pid):
                raise BuildLocked(
                    f"another build is running in this folder (PID: {old_pid}); "
                    f"remove {self.lock_path} if that is wrong")

            logger.info(f"Removing stale lock from PID {old_pid}")
            try:
                os.remove(self.lock_path)
            except FileNotFoundError:
                pass

        # Written in full to a temp file, then linked into place: the lock
        # file never exists with partial content
        fd, tmp_path = tempfile.mkstemp(prefix=LOCK_FILE + ".",
                                        dir=os.path.dirname(self.lock_path))
        try:
            with os.fdopen(fd, 'w') as f:
                json.dump({
                    'pid': self.pid,
                    'timestamp': datetime.now().isoformat()
                }, f)
            os.link(tmp_path, self.lock_path)
        except FileExistsError:
            raise BuildLocked(f"another build grabbed the lock first ({self.lock_path})")
        finally:
            os.remove(tmp_path)
        self.locked = True
        logger.debug(f"Lock acquired: {self.lock_path}")

    def release(self):
        """Release lock."""
        if self.locked and os.path.exists(self.lock_path):
            try:
                os.remove(self.lock_path)
            except OSError as e:
                logger.warning(f"Failed to release lock: {e}")
        self.locked = False

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False

    @staticmethod
    def _is_process_running(pid: int) -> bool:
        """Check if a process with given PID is running."""
        if pid <= 0:
            return False
        try:
            # Signal 0 doesn't kill, just checks
            os.kill(pid, 0)
        except ProcessLookupError:
            return False
        except PermissionError:
            # Exists but owned by someone else
            return True
        except OSError:
            return False
        return True
