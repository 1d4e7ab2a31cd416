"""
Snapshot repositories.

A repository persists the store's snapshot dict as one unit. Business logic
only sees ``load()`` and ``save()``, so the backing store can be a JSON file
or a SQL database without touching anything else.
"""
import json
import logging
import os
import tempfile
import time
from typing import Optional, Protocol

from fruitmerge.config import Settings
from fruitmerge.database import build_engine, init_db, make_session_factory, session_scope
from fruitmerge.models import SNAPSHOT_ID, StoredSnapshot
from fruitmerge.monitoring import StorageTrace

logger = logging.getLogger(__name__)


class SnapshotRepository(Protocol):
    def load(self) -> Optional[dict]:
        """Return the last saved snapshot, or None if nothing was saved yet."""

    def save(self, snapshot: dict) -> None:
        """Persist ``snapshot``, replacing the previous one."""

    def quarantine(self) -> str:
        """Keep a copy of the saved snapshot aside; return where it went."""


class JsonFileRepository:
    """Stores the snapshot as a single pretty-printed JSON file."""

    product = "JSONFile"

    def __init__(self, path: str):
        self.path = path

    def load(self) -> Optional[dict]:
        if not os.path.exists(self.path):
            return None
        with StorageTrace(self.product, "load"):
            with open(self.path, "r", encoding="utf-8") as fh:
                return json.load(fh)

    def save(self, snapshot: dict) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        with StorageTrace(self.product, "save"):
            # Write next to the target then swap, so a crash never leaves half a file
            fd, tmp_path = tempfile.mkstemp(prefix=".snapshot-", suffix=".json", dir=directory)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(snapshot, fh, ensure_ascii=False, indent=2)
                os.replace(tmp_path, self.path)
            except Exception:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise

    def quarantine(self) -> str:
        backup = f"{self.path}.corrupt-{int(time.time())}"
        os.replace(self.path, backup)
        return backup


class SqlSnapshotRepository:
    """Stores the snapshot as one row of the ``snapshots`` table."""

    product = "SQL"

    def __init__(self, database_url: str):
        self.engine = build_engine(database_url)
        init_db(self.engine)
        self.session_factory = make_session_factory(self.engine)

    def load(self) -> Optional[dict]:
        with StorageTrace(self.product, "load"):
            with session_scope(self.session_factory) as session:
                row = session.get(StoredSnapshot, SNAPSHOT_ID)
                if row is None:
                    return None
                return json.loads(row.payload)

    def save(self, snapshot: dict) -> None:
        payload = json.dumps(snapshot, ensure_ascii=False)
        with StorageTrace(self.product, "save"):
            with session_scope(self.session_factory) as session:
                row = session.get(StoredSnapshot, SNAPSHOT_ID)
                if row is None:
                    session.add(StoredSnapshot(id=SNAPSHOT_ID, payload=payload))
                else:
                    row.payload = payload

    def quarantine(self) -> str:
        """Copy the snapshot row to a new row that is never read back."""
        with session_scope(self.session_factory) as session:
            row = session.get(StoredSnapshot, SNAPSHOT_ID)
            if row is None:
                return "nothing"
            backup = StoredSnapshot(payload=row.payload)
            session.add(backup)
            session.flush()
            return f"snapshots row {backup.id}"


def build_repository(settings: Settings) -> SnapshotRepository:
    """Pick the repository named by ``settings.storage_backend``."""
    backend = settings.storage_backend.lower()
    if backend == "json":
        return JsonFileRepository(settings.data_file)
    if backend == "sql":
        return SqlSnapshotRepository(settings.database_url)
    raise ValueError(f"Unknown storage backend: {settings.storage_backend!r}")
