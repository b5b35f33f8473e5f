"""
Named file locks for single-writer sections.

Lock files live next to the data they guard, so the lock holds across
processes sharing that directory.
"""

from __future__ import annotations

import os
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

LOCK_TIMEOUT_SECONDS = 30
LOCK_POLL_INTERVAL = 0.05


def lock_path(locks_dir: Path, key: str) -> Path:
    safe = "".join(c if c.isalnum() or c in "-_" else "_" for c in key)
    return locks_dir / f"{safe}.lock"


@contextmanager
def acquire_lock(
    locks_dir: Path,
    key: str,
    timeout_seconds: float = LOCK_TIMEOUT_SECONDS,
) -> Generator[None, None, None]:
    """
    Acquire a named lock (e.g. ``users:write``).

    Blocks until acquired or raises TimeoutError. Only the holder removes
    the lock file; a lock left behind by a dead process is broken.
    """
    path = lock_path(locks_dir, key)
    path.parent.mkdir(parents=True, exist_ok=True)
    start = time.monotonic()
    while True:
        try:
            fd = os.open(str(path), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            if _is_stale(path, timeout_seconds):
                _break_stale_lock(path)
                continue
            if (time.monotonic() - start) >= timeout_seconds:
                raise TimeoutError(f"Could not acquire lock {key} within {timeout_seconds}s")
            time.sleep(LOCK_POLL_INTERVAL)
            continue
        try:
            os.write(fd, str(os.getpid()).encode())
        finally:
            os.close(fd)
        break

    try:
        yield
    finally:
        try:
            path.unlink()
        except FileNotFoundError:
            pass


def _read_holder(path: Path) -> Optional[int]:
    try:
        return int(path.read_text(encoding="utf-8").strip())
    except (OSError, ValueError):
        return None


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # exists, owned by another user
        return True
    return True


def _is_stale(path: Path, timeout_seconds: float) -> bool:
    pid = _read_holder(path)
    if pid is not None:
        return not _pid_alive(pid)
    # no pid yet: holder may be between create and write
    try:
        age = time.time() - path.stat().st_mtime
    except FileNotFoundError:
        return False
    return age > timeout_seconds


def _break_stale_lock(path: Path) -> None:
    """Move the stale lock aside, restoring it if another waiter already re-took it"""
    expected = _read_holder(path)
    aside = path.with_name(f"{path.name}.stale.{os.getpid()}.{threading.get_ident()}")
    try:
        os.rename(str(path), str(aside))
    except FileNotFoundError:
        return
    try:
        if _read_holder(aside) != expected:
            try:
                os.link(str(aside), str(path))
            except FileExistsError:
                pass
    finally:
        aside.unlink()


def lock_key_user_writes(users_file: str) -> str:
    return f"lock:users:{users_file}:write"
