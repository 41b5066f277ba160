"""
Path generation for artifact storage.
All paths are relative to ARTIFACT_ROOT.
"""

import hashlib
import re
from pathlib import Path


def _slug(value: str, limit: int = 40) -> str:
    slug = re.sub(r"[^A-Za-z0-9_-]+", "_", value or "").strip("_")
    return slug[:limit] or "x"


def owner_dir(owner_scope: str) -> str:
    """Filesystem-safe directory for an owner scope; the hash suffix keeps distinct scopes apart."""
    digest = hashlib.sha256((owner_scope or "").encode("utf-8")).hexdigest()[:12]
    return f"{_slug(owner_scope)}-{digest}"


def fingerprint_dir(owner_scope: str) -> str:
    """Directory holding every fingerprint record of one owner."""
    return f"fingerprints/{owner_dir(owner_scope)}"


def fingerprint_record_path(owner_scope: str, document_id: str) -> str:
    """Path for one fingerprint record JSON."""
    digest = hashlib.sha256((document_id or "").encode("utf-8")).hexdigest()[:12]
    return f"{fingerprint_dir(owner_scope)}/{_slug(document_id)}-{digest}.json"


def ensure_parent_dirs(artifact_root: str, relative_path: str) -> Path:
    """Create parent directories and return the full absolute path."""
    full_path = Path(artifact_root) / relative_path
    full_path.parent.mkdir(parents=True, exist_ok=True)
    return full_path
