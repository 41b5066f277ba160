"""
Artifact store: JSON documents on the local filesystem under ARTIFACT_ROOT.
"""

import json
import os
from pathlib import Path
from typing import Optional

import structlog

from vat_intake.config import settings
from vat_intake.storage.paths import ensure_parent_dirs

logger = structlog.get_logger(__name__)


class ArtifactStore:
    """
    Save and load JSON artifacts.
    All paths are relative to ARTIFACT_ROOT.
    """

    def __init__(self, root: Optional[str] = None):
        self.root = Path(root or settings.ARTIFACT_ROOT)
        self.root.mkdir(parents=True, exist_ok=True)

    def save_json(self, relative_path: str, data: dict) -> str:
        """Write atomically (temp file + rename). Returns the relative path."""
        full_path = ensure_parent_dirs(str(self.root), relative_path)
        tmp_path = full_path.with_suffix(full_path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, default=str, indent=2), encoding="utf-8")
        os.replace(tmp_path, full_path)
        logger.debug("artifact_saved_json", path=relative_path)
        return relative_path

    def load_json(self, relative_path: str) -> dict:
        full_path = self.root / relative_path
        if not full_path.exists():
            raise FileNotFoundError(f"Artifact not found: {relative_path}")
        return json.loads(full_path.read_text(encoding="utf-8"))

    def exists(self, relative_path: str) -> bool:
        return (self.root / relative_path).exists()

    def list_json(self, relative_dir: str) -> list[str]:
        """Relative paths of every JSON artifact directly under a directory."""
        directory = self.root / relative_dir
        if not directory.exists():
            return []
        return sorted(
            str(p.relative_to(self.root))
            for p in directory.glob("*.json")
            if p.is_file()
        )
