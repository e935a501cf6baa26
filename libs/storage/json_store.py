from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping

from libs.core.exceptions import NotFoundError
from libs.core.models import Collection, Snapshot

from .gateway import SnapshotLike, snapshot_payload

logger = logging.getLogger(__name__)

FILE_NAMES: Dict[Collection, str] = {
    Collection.DOCUMENTS: "documents.json",
    Collection.FOLDERS: "folders.json",
    Collection.ENTITIES: "entities.json",
    Collection.ASSIGNED_TEXT_BLOCKS: "assignedTextBlocks.json",
}


class JsonFileStore:
    """File system storage keeping each collection as a JSON array file.

    Records are stored as plain dicts; the store does not interpret them
    beyond their ``id``.
    """

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = Path(data_dir)

    # ------------------------------------------------------------------
    # public API
    def path_for(self, collection: Collection) -> Path:
        return self.data_dir / FILE_NAMES[collection]

    def ensure_files(self) -> None:
        """Create the data directory and any missing collection file."""

        self.data_dir.mkdir(parents=True, exist_ok=True)
        for collection in Collection:
            path = self.path_for(collection)
            if not path.exists():
                self._write(collection, [])
                logger.info("Created %s with default content", path.name)

    def list(self, collection: Collection) -> List[Dict[str, Any]]:
        return self._read(collection)

    def get(self, collection: Collection, record_id: str) -> Dict[str, Any]:
        for record in self._read(collection):
            if record.get("id") == record_id:
                return record
        raise NotFoundError(f"{collection.value} record {record_id!r} not found")

    def create(self, collection: Collection, record: Dict[str, Any]) -> Dict[str, Any]:
        records = self._read(collection)
        records.append(record)
        self._write(collection, records)
        return record

    def update(self, collection: Collection, record_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        """Merge ``fields`` into the stored record (partial update)."""

        records = self._read(collection)
        for index, record in enumerate(records):
            if record.get("id") == record_id:
                records[index] = {**record, **fields}
                self._write(collection, records)
                return records[index]
        raise NotFoundError(f"{collection.value} record {record_id!r} not found")

    def remove(self, collection: Collection, record_id: str) -> None:
        records = self._read(collection)
        kept = [r for r in records if r.get("id") != record_id]
        if len(kept) == len(records):
            raise NotFoundError(f"{collection.value} record {record_id!r} not found")
        self._write(collection, kept)

    def read_all(self) -> Dict[str, List[Dict[str, Any]]]:
        return {collection.value: self._read(collection) for collection in Collection}

    # ------------------------------------------------------------------
    # gateway verbs
    def fetch_all(self) -> Snapshot:
        return Snapshot.model_validate(self.read_all())

    def persist(self, collection: Collection, record: Dict[str, Any]) -> None:
        try:
            self.update(collection, record["id"], record)
        except NotFoundError:
            self.create(collection, record)

    def delete(self, collection: Collection, record_id: str) -> None:
        self.remove(collection, record_id)

    def replace_all(self, snapshot: SnapshotLike) -> None:
        """Overwrite every collection; missing or non-array entries become empty."""

        payload = snapshot_payload(snapshot)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        for collection in Collection:
            records = payload.get(collection.value)
            self._write(collection, records if isinstance(records, list) else [])
        logger.info("All data imported and replaced existing data")

    # ------------------------------------------------------------------
    # helpers
    def _read(self, collection: Collection) -> List[Dict[str, Any]]:
        path = self.path_for(collection)
        if not path.exists():
            return []
        text = path.read_text(encoding="utf-8")
        if not text.strip():
            logger.warning("%s is empty; treating it as an empty collection", path.name)
            return []
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            logger.error("Corrupted JSON in %s; resetting it to an empty collection", path.name, exc_info=True)
            self._write(collection, [])
            return []
        if not isinstance(data, list):
            logger.error("%s does not hold a JSON array; resetting it", path.name)
            self._write(collection, [])
            return []
        return data

    def _write(self, collection: Collection, records: List[Dict[str, Any]]) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.path_for(collection).write_text(
            json.dumps(records, indent=2, ensure_ascii=False), encoding="utf-8"
        )


__all__ = ["JsonFileStore", "FILE_NAMES"]
