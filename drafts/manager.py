"""Named, restorable snapshots of in-progress form state."""

import json
import logging
import threading
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, Optional, TypeVar

from drafts.storage import DraftStorage, MemoryStorage, get_draft_storage


T = TypeVar("T")

_id_lock = threading.Lock()
_last_id = 0


def generate_draft_id(taken: Optional[set] = None) -> str:
    """Millisecond time token, strictly increasing within the process."""
    global _last_id
    taken = taken or set()
    with _id_lock:
        candidate = max(int(time.time() * 1000), _last_id + 1)
        while str(candidate) in taken:
            candidate += 1
        _last_id = candidate
    return str(candidate)


def default_draft_name() -> str:
    return f"Draft {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Draft(Generic[T]):
    id: str
    name: str
    timestamp: str
    data: T

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Draft[T]":
        return cls(
            id=str(raw["id"]),
            name=raw.get("name", ""),
            timestamp=raw.get("timestamp", ""),
            data=raw.get("data"),
        )


class DraftManager(Generic[T]):
    """Draft collection for one storage scope.

    Every write re-serializes the whole collection under `storage_key`. There
    is no coordination between managers sharing a scope: the last writer's
    collection wins.
    """

    def __init__(self, storage_key: str, storage: Optional[DraftStorage] = None):
        self.storage_key = storage_key
        if storage is None:
            try:
                storage = get_draft_storage()
            except Exception as exc:
                logging.error("Draft storage unavailable, keeping drafts in memory: %s", str(exc))
                storage = MemoryStorage()
        self.storage = storage
        self.active_draft_id: Optional[str] = None
        self._drafts: List[Draft[T]] = []
        self.refresh()

    def _read_persisted(self) -> List[Draft[T]]:
        raw = self.storage.get(self.storage_key)
        if not raw:
            return []
        items = json.loads(raw)
        if not isinstance(items, list):
            raise ValueError(f"Expected a JSON array under {self.storage_key}")
        return [Draft.from_dict(item) for item in items]

    def _write(self, drafts: List[Draft[T]]) -> None:
        self.storage.set(self.storage_key, json.dumps([d.to_dict() for d in drafts]))
        self._drafts = drafts

    def refresh(self) -> List[Draft[T]]:
        """Reload the cache from storage; unreadable storage yields no drafts."""
        try:
            self._drafts = self._read_persisted()
        except Exception as exc:
            logging.error("Failed to load drafts from %s: %s", self.storage_key, str(exc))
            self._drafts = []
        return self.list()

    def list(self) -> List[Draft[T]]:
        return list(self._drafts)

    def save(self, name: str, data: T, existing_id: Optional[str] = None) -> Optional[str]:
        """Create a draft, or update `existing_id` in place if it is stored.

        Returns the id written, or None if storage failed.
        """
        draft_name = name.strip() or default_draft_name()
        try:
            drafts = self._read_persisted()

            if existing_id:
                for draft in drafts:
                    if draft.id == existing_id:
                        draft.name = draft_name
                        draft.timestamp = _now_iso()
                        draft.data = data
                        self._write(drafts)
                        return existing_id

            new_draft = Draft(
                id=generate_draft_id({d.id for d in drafts}),
                name=draft_name,
                timestamp=_now_iso(),
                data=data,
            )
            self._write(drafts + [new_draft])
            self.active_draft_id = new_draft.id
            logging.info("Saved draft %s to %s", new_draft.id, self.storage_key)
            return new_draft.id
        except Exception as exc:
            logging.error("Failed to save draft to %s: %s", self.storage_key, str(exc))
            return None

    def restore(self, draft_id: str) -> Optional[T]:
        for draft in self._drafts:
            if draft.id == draft_id:
                self.active_draft_id = draft_id
                return draft.data
        return None

    def delete(self, draft_id: str) -> None:
        try:
            drafts = self._read_persisted()
        except Exception as exc:
            logging.error("Failed to read drafts from %s: %s", self.storage_key, str(exc))
            drafts = list(self._drafts)

        remaining = [d for d in drafts if d.id != draft_id]
        if len(remaining) != len(drafts):
            try:
                self._write(remaining)
            except Exception as exc:
                logging.error("Failed to delete draft %s: %s", draft_id, str(exc))
                return
        else:
            self._drafts = [d for d in self._drafts if d.id != draft_id]

        if self.active_draft_id == draft_id:
            self.active_draft_id = None
