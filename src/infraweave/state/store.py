"""Durable record of the last applied state of every declaration."""

import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict
from pydantic import ValidationError as PydanticValidationError
from ..model.models import StateRecord
from ..utils.errors import StateStoreError
from ..utils.logging import get_logger

logger = get_logger("state.store")

STATE_FORMAT_VERSION = 1


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class StateStore(ABC):
    """
    Per-declaration state records with an explicit open/close lifecycle.

    ``save`` and ``delete`` are atomic per key and serialized by the store's
    lock, so concurrent callers never observe a partially written record.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._opened = False

    def open(self) -> "StateStore":
        self._opened = True
        return self

    def close(self) -> None:
        self._opened = False

    def __enter__(self) -> "StateStore":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _require_open(self) -> None:
        if not self._opened:
            raise StateStoreError(f"{type(self).__name__} is not open")

    @abstractmethod
    def load(self) -> Dict[str, StateRecord]:
        """Return a copy of all records by declaration id."""
        pass

    @abstractmethod
    def save(self, declaration_id: str, record: StateRecord) -> None:
        """Insert or replace one record."""
        pass

    @abstractmethod
    def delete(self, declaration_id: str) -> None:
        """Remove one record (missing ids are ignored)."""
        pass


class MemoryStateStore(StateStore):
    """State store kept in process memory."""

    def __init__(self, records: Dict[str, StateRecord] = None):
        super().__init__()
        self._records: Dict[str, StateRecord] = {
            key: record.model_copy(deep=True) for key, record in (records or {}).items()
        }

    def load(self) -> Dict[str, StateRecord]:
        self._require_open()
        with self._lock:
            return {key: record.model_copy(deep=True) for key, record in self._records.items()}

    def save(self, declaration_id: str, record: StateRecord) -> None:
        self._require_open()
        with self._lock:
            self._records[declaration_id] = record.model_copy(update={"updated_at": now_iso()}, deep=True)

    def delete(self, declaration_id: str) -> None:
        self._require_open()
        with self._lock:
            self._records.pop(declaration_id, None)


class JsonFileStateStore(StateStore):
    """
    State store persisted as one JSON document.

    Every write rewrites the document to a temporary file in the same
    directory and renames it over the original, so a crash mid-write leaves
    either the previous or the new document, never a truncated one.
    """

    def __init__(self, path: str):
        super().__init__()
        self.path = Path(path)
        self._records: Dict[str, StateRecord] = {}

    def open(self) -> "JsonFileStateStore":
        self._records = self._read()
        logger.debug(f"Opened state file {self.path} with {len(self._records)} records")
        return super().open()

    def _read(self) -> Dict[str, StateRecord]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise StateStoreError(f"Invalid JSON in state file {self.path}: {e}")
        except OSError as e:
            raise StateStoreError(f"Error reading state file {self.path}: {e}")

        if not isinstance(data, dict) or "records" not in data:
            raise StateStoreError(f"State file {self.path} must contain a 'records' mapping")
        version = data.get("version")
        if version != STATE_FORMAT_VERSION:
            raise StateStoreError(
                f"Unsupported state file version {version} (expected {STATE_FORMAT_VERSION})"
            )

        records = {}
        for declaration_id, raw in data["records"].items():
            try:
                records[declaration_id] = StateRecord(**raw)
            except PydanticValidationError as e:
                raise StateStoreError(f"Invalid state record '{declaration_id}': {e}")
        return records

    def _write(self, records: Dict[str, StateRecord]) -> None:
        document = {
            "version": STATE_FORMAT_VERSION,
            "records": {
                key: record.model_dump(mode="json")
                for key, record in sorted(records.items())
            },
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(document, f, indent=2, default=str)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except (OSError, TypeError) as e:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise StateStoreError(f"Failed to write state file {self.path}: {e}")

    def load(self) -> Dict[str, StateRecord]:
        self._require_open()
        with self._lock:
            return {key: record.model_copy(deep=True) for key, record in self._records.items()}

    def save(self, declaration_id: str, record: StateRecord) -> None:
        """Persist one record; memory only changes once the file has been replaced."""
        self._require_open()
        with self._lock:
            updated = dict(self._records)
            updated[declaration_id] = record.model_copy(update={"updated_at": now_iso()}, deep=True)
            self._write(updated)
            self._records = updated
        logger.debug(f"Saved state record '{declaration_id}' ({record.status.value})")

    def delete(self, declaration_id: str) -> None:
        self._require_open()
        with self._lock:
            if declaration_id in self._records:
                remaining = {key: record for key, record in self._records.items() if key != declaration_id}
                self._write(remaining)
                self._records = remaining
        logger.debug(f"Deleted state record '{declaration_id}'")
