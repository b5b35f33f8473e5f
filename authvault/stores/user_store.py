"""
User storage with JSON-based persistence.

The whole collection is read on every lookup and rewritten on every
mutation. Malformed content is treated as corruption and reset to an empty
collection instead of failing the caller.
"""

from __future__ import annotations

import json
import os
import shutil
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, ContextManager, Dict, Iterator, List, Optional, Protocol, Sequence

from pydantic import ValidationError

from ..auth.models import UserRecord
from ..core.locks import LOCK_TIMEOUT_SECONDS, acquire_lock, lock_key_user_writes
from ..utils.exceptions import PersistenceError
from ..utils.logger import get_logger

logger = get_logger(__name__)

EMPTY_COLLECTION: Dict[str, Any] = {"users": []}


class UserStore(Protocol):
    """Load/save contract the auth engine depends on"""

    def initialize(self) -> None: ...

    def load_all(self) -> List[UserRecord]: ...

    def save_all(self, records: Sequence[UserRecord]) -> None: ...

    def write_lock(self) -> ContextManager[None]: ...


def find_by_email(store: UserStore, email: str) -> Optional[UserRecord]:
    """Exact-match lookup"""
    for record in store.load_all():
        if record.email == email:
            return record
    return None


class JsonUserStore:
    """User store backed by a single JSON document"""

    def __init__(self, path: Path, lock_timeout_seconds: float = LOCK_TIMEOUT_SECONDS):
        self.users_path = Path(path)
        self.locks_dir = self.users_path.parent / "locks"
        self.lock_timeout_seconds = lock_timeout_seconds

    def initialize(self) -> None:
        """Create the data directory and an empty collection if missing"""
        if self.users_path.exists():
            return
        try:
            self.users_path.parent.mkdir(parents=True, exist_ok=True)
            temp_path = self._write_temp(EMPTY_COLLECTION)
            try:
                # link() refuses to replace, so a concurrent initializer or
                # writer that got there first wins
                os.link(str(temp_path), str(self.users_path))
                logger.info("User store created", path=str(self.users_path))
            except FileExistsError:
                pass
            finally:
                temp_path.unlink()
        except OSError as e:
            raise PersistenceError(
                f"Failed to initialize user store at {self.users_path}: {e}"
            ) from e

    def load_all(self) -> List[UserRecord]:
        """Load all users from storage"""
        try:
            self.initialize()
            with open(self.users_path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            items = raw["users"]
            if not isinstance(items, list):
                raise TypeError("'users' is not a list")
            return [UserRecord.model_validate(item) for item in items]
        except (json.JSONDecodeError, UnicodeDecodeError, KeyError, TypeError, ValidationError) as e:
            logger.warning(
                "User store corrupted, resetting to empty",
                path=str(self.users_path),
                error=str(e),
            )
            self._reset()
            return []
        except (OSError, PersistenceError) as e:
            logger.error("Error reading users", path=str(self.users_path), error=str(e))
            return []

    def save_all(self, records: Sequence[UserRecord]) -> None:
        """Atomically replace the stored collection"""
        self.initialize()
        payload = {"users": [record.to_storage() for record in records]}
        self._atomic_write(payload)

    @contextmanager
    def write_lock(self) -> Iterator[None]:
        try:
            with acquire_lock(
                self.locks_dir,
                lock_key_user_writes(self.users_path.name),
                timeout_seconds=self.lock_timeout_seconds,
            ):
                yield
        except TimeoutError as e:
            raise PersistenceError(f"User store is busy: {e}") from e

    def _reset(self) -> None:
        try:
            self._atomic_write(EMPTY_COLLECTION)
        except PersistenceError as e:
            logger.error("Failed to reset corrupted user store", error=str(e))

    def _write_temp(self, data: Dict[str, Any]) -> Path:
        with tempfile.NamedTemporaryFile(
            mode="w", dir=str(self.users_path.parent), delete=False, encoding="utf-8"
        ) as tf:
            temp_path = Path(tf.name)
            try:
                json.dump(data, tf, indent=2, ensure_ascii=False)
            except OSError:
                tf.close()
                temp_path.unlink()
                raise
        return temp_path

    def _atomic_write(self, data: Dict[str, Any]) -> None:
        """Write JSON file atomically"""
        temp_path: Optional[Path] = None
        try:
            temp_path = self._write_temp(data)
            # Atomic move/replace
            shutil.move(str(temp_path), str(self.users_path))
        except OSError as e:
            # Clean up temp file if move failed
            if temp_path is not None and temp_path.exists():
                temp_path.unlink()
            raise PersistenceError(f"Failed to save users to {self.users_path}: {e}") from e


class InMemoryUserStore:
    """Process-local store honouring the same contract, for tests and embedding"""

    def __init__(self, records: Optional[Sequence[UserRecord]] = None):
        self._records: List[UserRecord] = list(records or [])
        self._lock = threading.Lock()

    def initialize(self) -> None:
        pass

    def load_all(self) -> List[UserRecord]:
        return list(self._records)

    def save_all(self, records: Sequence[UserRecord]) -> None:
        self._records = list(records)

    def write_lock(self) -> ContextManager[None]:
        return self._lock
