"""
Fingerprint persistence used by duplicate detection.

Reads are always scoped to one owner. The in-memory store is for tests and
single-process runs; the artifact store keeps one JSON file per record.
"""

import json
import threading
from abc import ABC, abstractmethod
from typing import Optional

import structlog
from pydantic import ValidationError

from vat_intake.schemas.contracts import FingerprintRecord
from vat_intake.storage.artifact_store import ArtifactStore
from vat_intake.storage.paths import fingerprint_dir, fingerprint_record_path

logger = structlog.get_logger(__name__)


class FingerprintStore(ABC):

    @abstractmethod
    def list_for_owner(self, owner_scope: str, exclude_id: Optional[str] = None) -> list[FingerprintRecord]:
        """Every stored record of `owner_scope`, minus `exclude_id`."""
        ...

    @abstractmethod
    def save(self, record: FingerprintRecord) -> None:
        """Insert or replace by (owner_scope, document_id)."""
        ...

    @abstractmethod
    def get(self, owner_scope: str, document_id: str) -> Optional[FingerprintRecord]:
        ...


class InMemoryFingerprintStore(FingerprintStore):

    def __init__(self, records: Optional[list[FingerprintRecord]] = None):
        self._lock = threading.Lock()
        self._records: dict[str, dict[str, FingerprintRecord]] = {}
        for record in records or []:
            self.save(record)

    def list_for_owner(self, owner_scope: str, exclude_id: Optional[str] = None) -> list[FingerprintRecord]:
        with self._lock:
            scoped = list(self._records.get(owner_scope, {}).values())
        return [r for r in scoped if r.document_id != exclude_id]

    def save(self, record: FingerprintRecord) -> None:
        with self._lock:
            self._records.setdefault(record.owner_scope, {})[record.document_id] = record

    def get(self, owner_scope: str, document_id: str) -> Optional[FingerprintRecord]:
        with self._lock:
            return self._records.get(owner_scope, {}).get(document_id)


class ArtifactFingerprintStore(FingerprintStore):
    """One JSON file per record under fingerprints/<owner>/ in the artifact root."""

    def __init__(self, artifacts: Optional[ArtifactStore] = None):
        self.artifacts = artifacts or ArtifactStore()

    def list_for_owner(self, owner_scope: str, exclude_id: Optional[str] = None) -> list[FingerprintRecord]:
        records = []
        for path in self.artifacts.list_json(fingerprint_dir(owner_scope)):
            try:
                record = FingerprintRecord.model_validate(self.artifacts.load_json(path))
            except (json.JSONDecodeError, ValidationError) as e:
                logger.warning("fingerprint_record_unreadable", path=path, error=str(e))
                continue
            if record.owner_scope != owner_scope or record.document_id == exclude_id:
                continue
            records.append(record)
        return records

    def save(self, record: FingerprintRecord) -> None:
        path = fingerprint_record_path(record.owner_scope, record.document_id)
        self.artifacts.save_json(path, record.model_dump(mode="json"))
        logger.info(
            "fingerprint_record_saved",
            owner_scope=record.owner_scope,
            document_id=record.document_id,
        )

    def get(self, owner_scope: str, document_id: str) -> Optional[FingerprintRecord]:
        path = fingerprint_record_path(owner_scope, document_id)
        if not self.artifacts.exists(path):
            return None
        return FingerprintRecord.model_validate(self.artifacts.load_json(path))
