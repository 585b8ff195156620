"""Generic repository for one named collection of records."""
import datetime
import json
import logging
import os
import secrets
import tempfile
import threading
from typing import Callable, Dict, List, Optional

from ..errors import NotFoundError, PersistenceError

_PROTECTED_FIELDS = ('id', 'createdAt', 'updatedAt')


def utc_now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def new_record_id() -> str:
    return secrets.token_hex(8)


class CollectionRepository:
    """Persists one array of records as ``{"<collection>": [...]}``.

    The file is re-read on every call; nothing is cached in memory.  A
    missing or corrupt file, or a document whose named key is absent or not
    a list, reads as an empty collection.

    All mutations run a full read-modify-write while holding the
    repository's lock, so writers in the same process never overwrite each
    other's changes.  Writes go to a temp file in the same directory which
    then replaces the collection file.  Records are kept newest first.
    """

    #: Key of the array inside the JSON document.
    COLLECTION = ''
    #: File name used when the repository is built from a data directory.
    FILE_NAME = ''

    def __init__(self, file_path: str, collection: Optional[str] = None) -> None:
        self.file_path = file_path
        self.collection = collection or self.COLLECTION
        if not self.collection:
            raise ValueError('collection name is required')
        self._log = logging.getLogger(f'switchgames.repository.{type(self).__name__}')
        self._lock = threading.RLock()

    @classmethod
    def in_directory(cls, data_dir: str) -> 'CollectionRepository':
        return cls(os.path.join(data_dir, cls.FILE_NAME))

    # ------------------------------------------------------------------
    # Whole-collection access
    # ------------------------------------------------------------------

    def read_all(self) -> List[Dict]:
        if not os.path.exists(self.file_path):
            return []
        try:
            with open(self.file_path, 'r', encoding='utf-8') as fh:
                document = json.load(fh)
        except (OSError, ValueError) as exc:
            self._log.warning("Could not read %s, treating as empty: %s", self.file_path, exc)
            return []

        records = document.get(self.collection) if isinstance(document, dict) else None
        if not isinstance(records, list):
            self._log.warning("%s has no '%s' list, treating as empty",
                              self.file_path, self.collection)
            return []
        return [r for r in records if isinstance(r, dict)]

    def write_all(self, records: List[Dict]) -> None:
        """Replace the collection file with *records*.

        Raises:
            PersistenceError: the records could not be serialized or the file
                could not be replaced; the previous file is left untouched.
        """
        directory = os.path.dirname(os.path.abspath(self.file_path))
        with self._lock:
            tmp_path = None
            try:
                os.makedirs(directory, exist_ok=True)
                fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=f'.{self.collection}-',
                                                suffix='.tmp')
                with os.fdopen(fd, 'w', encoding='utf-8') as fh:
                    json.dump({self.collection: list(records)}, fh, indent=2, ensure_ascii=False)
                os.replace(tmp_path, self.file_path)
            except (OSError, TypeError, ValueError) as exc:
                self._log.error("Could not write %s: %s", self.file_path, exc)
                if tmp_path and os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise PersistenceError() from exc

    def mutate(self, fn: Callable[[List[Dict]], Optional[List[Dict]]]) -> List[Dict]:
        """Run *fn* over the current records under the lock and persist the result.

        *fn* may modify the list in place (return ``None``) or return a new list.
        """
        with self._lock:
            records = self.read_all()
            result = fn(records)
            if result is not None:
                records = result
            self.write_all(records)
            return records

    # ------------------------------------------------------------------
    # Record access
    # ------------------------------------------------------------------

    def find(self, record_id: str) -> Optional[Dict]:
        for record in self.read_all():
            if record.get('id') == record_id:
                return record
        return None

    def create(self, fields: Dict) -> Dict:
        now = utc_now_iso()
        record = {k: v for k, v in fields.items() if k not in _PROTECTED_FIELDS}
        with self._lock:
            records = self.read_all()
            existing = {r.get('id') for r in records}
            record_id = new_record_id()
            while record_id in existing:
                record_id = new_record_id()
            record = {'id': record_id, **record, 'createdAt': now, 'updatedAt': now}
            records.insert(0, record)
            self.write_all(records)
        self._log.debug("Created %s record %s", self.collection, record_id)
        return record

    def update(self, record_id: str, patch: Dict) -> Dict:
        changes = {k: v for k, v in patch.items() if k not in _PROTECTED_FIELDS}
        with self._lock:
            records = self.read_all()
            for index, record in enumerate(records):
                if record.get('id') == record_id:
                    break
            else:
                raise NotFoundError()
            updated = {**record, **changes, 'id': record_id, 'updatedAt': utc_now_iso()}
            records[index] = updated
            self.write_all(records)
        return updated

    def delete(self, record_id: str) -> None:
        with self._lock:
            records = self.read_all()
            remaining = [r for r in records if r.get('id') != record_id]
            if len(remaining) == len(records):
                raise NotFoundError()
            self.write_all(remaining)
