"""
Schema store for the issue form.

Provides the store interface the editor and the ticket form depend on, and
a YAML file implementation. The file holds one document:

    title: Report Issue
    schema_version: 3
    fields:
      - id: 8f1c...
        label: Classroom
        name: classroom
        type: select
        order: 0
        optionSets:
          - options: [Comlab 201, Comlab 202]
"""

import copy
import logging
import os
import tempfile
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field as dataclass_field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import yaml

from .exceptions import PersistenceError
from .field_model import FieldDefinition, parse_field_definitions

logger = logging.getLogger(__name__)

SchemaCallback = Callable[[List[FieldDefinition]], None]


@dataclass
class SchemaBatch:
    """Writes produced by one schema save."""
    inserts: List[Dict[str, Any]] = dataclass_field(default_factory=list)
    updates: Dict[str, Dict[str, Any]] = dataclass_field(default_factory=dict)
    deletes: List[str] = dataclass_field(default_factory=list)
    # id -> new order for fields whose content did not change
    reorders: Dict[str, int] = dataclass_field(default_factory=dict)
    # editor ids of the inserted fields, parallel to inserts; conditions naming
    # them are pointed at the stored ids once those are assigned
    insert_ids: List[str] = dataclass_field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.inserts or self.updates or self.deletes or self.reorders)


class SchemaStore(ABC):
    """Where the ordered field list lives."""

    def __init__(self):
        self._subscribers: List[SchemaCallback] = []

    @abstractmethod
    def load_schema(self) -> List[FieldDefinition]:
        """Return the fields sorted by ``order`` ascending."""

    @abstractmethod
    def apply_batch(self, batch: SchemaBatch) -> None:
        """Apply inserts, updates and deletes all together or not at all."""

    @property
    def version(self) -> int:
        return 0

    def poll(self) -> bool:
        """
        Pick up changes made outside this process.

        Returns:
            True if a newer schema was loaded and subscribers were notified
        """
        return False

    def subscribe_schema(self, callback: SchemaCallback) -> Callable[[], None]:
        """
        Register a callback receiving each new field list.

        Returns:
            Function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, fields: List[FieldDefinition]) -> None:
        for callback in list(self._subscribers):
            try:
                callback(fields)
            except Exception as e:
                logger.error(f"Schema subscriber failed: {e}", exc_info=True)


def _sorted_documents(documents: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(documents, key=lambda doc: doc.get('order', 0))


def _remap_references(document: Dict[str, Any], id_map: Dict[str, str]) -> Dict[str, Any]:
    document = copy.deepcopy(document)
    conditions = [document.get('conditional')]
    conditions += [option_set.get('condition') for option_set in document.get('optionSets') or []]
    for condition in conditions:
        if condition and condition.get('field') in id_map:
            condition['field'] = id_map[condition['field']]
    return document


def apply_batch_to_documents(documents: List[Dict[str, Any]], batch: SchemaBatch,
                             path: Optional[Path] = None) -> Tuple[List[Dict[str, Any]], List[str]]:
    """
    Compute the field documents that result from a batch.

    The input list is not modified. Inserted documents get fresh ids, and
    conditions that named an inserted field by its editor id are rewritten to
    the fresh id.

    Returns:
        Tuple of (documents sorted by order, ids assigned to inserts)

    Raises:
        PersistenceError: If an update or delete names an id the store does not hold
    """
    by_id = {str(doc.get('id')): dict(doc) for doc in documents}

    referenced = list(batch.updates) + batch.deletes + list(batch.reorders)
    missing = [field_id for field_id in referenced if field_id not in by_id]
    if missing:
        raise PersistenceError(
            "save schema",
            message=f"Schema changed underneath the editor, unknown field ids: {', '.join(missing)}",
            path=path
        )

    for field_id in batch.deletes:
        del by_id[field_id]

    for field_id, data in batch.updates.items():
        by_id[field_id] = {'id': field_id, **data}

    for field_id, order in batch.reorders.items():
        by_id[field_id]['order'] = order

    new_ids = []
    for data in batch.inserts:
        field_id = uuid.uuid4().hex
        new_ids.append(field_id)
        by_id[field_id] = {'id': field_id, **data}

    id_map = dict(zip(batch.insert_ids, new_ids))
    if id_map:
        by_id = {field_id: _remap_references(doc, id_map) for field_id, doc in by_id.items()}

    return _sorted_documents(list(by_id.values())), new_ids


class YamlSchemaStore(SchemaStore):
    """
    Schema kept in a single YAML file, replaced atomically on every save.

    One instance is shared by every browser session, so saves and polls are
    serialized on a per-store lock.
    """

    def __init__(self, path: Path, title: str = "Report Issue"):
        super().__init__()
        self.path = Path(path)
        self.title = title
        self._last_mtime: Optional[float] = None
        self._version = 0
        self._lock = threading.RLock()

    @property
    def version(self) -> int:
        return self._version

    def _read_document(self) -> Dict[str, Any]:
        if not self.path.exists():
            logger.warning(f"Schema file not found: {self.path}, starting with an empty form")
            return {'title': self.title, 'schema_version': 0, 'fields': []}

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                document = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error(f"YAML parsing error in {self.path}: {e}")
            raise PersistenceError("load schema", e, path=self.path)
        except OSError as e:
            logger.error(f"Error reading schema {self.path}: {e}")
            raise PersistenceError("load schema", e, path=self.path)

        if not isinstance(document, dict):
            raise PersistenceError("load schema", message=f"Schema file {self.path} is not a mapping",
                                   path=self.path)

        fields = document.get('fields') or []
        if not isinstance(fields, list):
            raise PersistenceError("load schema", message=f"Schema 'fields' in {self.path} must be a list",
                                   path=self.path)

        document['fields'] = fields
        return document

    def load_schema(self) -> List[FieldDefinition]:
        document = self._read_document()
        self._version = int(document.get('schema_version', 0) or 0)
        if self.path.exists():
            self._last_mtime = os.path.getmtime(self.path)

        fields = parse_field_definitions(_sorted_documents(document['fields']))
        logger.info(f"Loaded schema {self.path} (version {self._version}, {len(fields)} fields)")
        return fields

    def _write_document(self, document: Dict[str, Any]) -> None:
        """Write to a private temp file beside the schema, then rename it over the schema."""
        temp_path: Optional[Path] = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile('w', encoding='utf-8', dir=self.path.parent,
                                             prefix=f".{self.path.name}.", suffix=".tmp",
                                             delete=False) as f:
                temp_path = Path(f.name)
                yaml.safe_dump(
                    document,
                    f,
                    default_flow_style=False,
                    indent=2,
                    sort_keys=False,
                    allow_unicode=True
                )
            os.replace(temp_path, self.path)
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Save failed for {self.path}: {e}")
            raise PersistenceError("save schema", e, path=self.path)
        finally:
            if temp_path is not None and temp_path.exists():
                try:
                    temp_path.unlink()
                except OSError as e:
                    logger.warning(f"Could not remove temp file {temp_path}: {e}")

    def apply_batch(self, batch: SchemaBatch) -> None:
        """
        Write the batch by replacing the whole file.

        The file is re-read under the store lock, so a concurrent save is
        applied on top of this one rather than interleaved with it.

        Raises:
            PersistenceError: If the schema cannot be read or written
        """
        with self._lock:
            document = self._read_document()
            documents, new_ids = apply_batch_to_documents(document['fields'], batch, self.path)

            document['fields'] = documents
            document['schema_version'] = int(document.get('schema_version', 0) or 0) + 1
            document.setdefault('title', self.title)

            self._write_document(document)

            logger.info(
                f"Saved schema {self.path}: {len(batch.inserts)} inserted ({', '.join(new_ids) or '-'}), "
                f"{len(batch.updates)} updated, {len(batch.reorders)} reordered, {len(batch.deletes)} deleted, "
                f"version {document['schema_version']}"
            )
            fields = self.load_schema()

        self._notify(fields)

    def poll(self) -> bool:
        """Reload and notify subscribers if the file changed since the last load."""
        with self._lock:
            if not self.path.exists():
                return False

            mtime = os.path.getmtime(self.path)
            if self._last_mtime is not None and mtime == self._last_mtime:
                return False

            fields = self.load_schema()

        self._notify(fields)
        return True


class InMemorySchemaStore(SchemaStore):
    """Store backed by a list of documents; used for demos and tests."""

    def __init__(self, documents: Optional[List[Dict[str, Any]]] = None):
        super().__init__()
        self._documents = [dict(doc) for doc in (documents or [])]
        self._version = 0
        self.fail_next_batch: Optional[Exception] = None

    @property
    def version(self) -> int:
        return self._version

    def load_schema(self) -> List[FieldDefinition]:
        return parse_field_definitions(_sorted_documents(self._documents))

    def apply_batch(self, batch: SchemaBatch) -> None:
        if self.fail_next_batch is not None:
            error, self.fail_next_batch = self.fail_next_batch, None
            raise PersistenceError("save schema", error)

        self._documents, _ = apply_batch_to_documents(self._documents, batch)
        self._version += 1
        self._notify(self.load_schema())
