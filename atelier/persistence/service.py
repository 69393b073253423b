"""Design persistence adapters."""
from __future__ import annotations

import json
import logging
import re
import uuid
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from pydantic import ValidationError

from atelier.common.errors import NotFound, PersistenceFailure
from atelier.config import runtime_config
from atelier.persistence.models import DesignDocument

logger = logging.getLogger(__name__)

_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


class PersistenceAdapter(Protocol):
    def save(self, document: DesignDocument, design_id: Optional[str] = None) -> str:
        ...

    def load(self, design_id: str) -> DesignDocument:
        ...


def new_design_id() -> str:
    return uuid.uuid4().hex


class InMemoryDesignStore:
    """Process-local store; documents are copied on the way in and out."""

    def __init__(self) -> None:
        self._docs: Dict[str, DesignDocument] = {}

    def save(self, document: DesignDocument, design_id: Optional[str] = None) -> str:
        design_id = design_id or new_design_id()
        self._docs[design_id] = document.model_copy(deep=True)
        logger.info("Saved design %s (%d elements)", design_id, len(document.elements))
        return design_id

    def load(self, design_id: str) -> DesignDocument:
        doc = self._docs.get(design_id)
        if doc is None:
            raise NotFound("design", design_id)
        return doc.model_copy(deep=True)

    def list_ids(self) -> List[str]:
        return list(self._docs)


class FileSystemDesignStore:
    """One JSON file per design.

    Path structure: ``{base_dir}/{design_id}.json`` holding the wire-format
    document.
    """

    def __init__(self, base_dir: Optional[str | Path] = None) -> None:
        self._base_dir = Path(base_dir) if base_dir else runtime_config.get_design_store_dir()

    def _path(self, design_id: str) -> Path:
        if not _SAFE_ID.match(design_id):
            raise NotFound("design", design_id)
        return self._base_dir / f"{design_id}.json"

    def save(self, document: DesignDocument, design_id: Optional[str] = None) -> str:
        design_id = design_id or new_design_id()
        path = self._path(design_id)
        tmp = path.with_suffix(".json.tmp")
        try:
            self._base_dir.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(document.to_wire(), ensure_ascii=False), encoding="utf-8")
            tmp.replace(path)
        except OSError as exc:
            logger.error("Failed to save design %s to %s: %s", design_id, path, exc)
            raise PersistenceFailure(
                f"Could not save design {design_id}: {exc}", details={"design_id": design_id}
            ) from exc
        logger.info("Saved design %s to %s", design_id, path)
        return design_id

    def load(self, design_id: str) -> DesignDocument:
        path = self._path(design_id)
        if not path.exists():
            raise NotFound("design", design_id)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return DesignDocument.from_wire(data)
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            logger.error("Failed to load design %s from %s: %s", design_id, path, exc)
            raise PersistenceFailure(
                f"Could not load design {design_id}: {exc}", details={"design_id": design_id}
            ) from exc

    def list_ids(self) -> List[str]:
        if not self._base_dir.is_dir():
            return []
        return sorted(p.stem for p in self._base_dir.glob("*.json"))


_default_store: Optional[PersistenceAdapter] = None


def get_design_store() -> PersistenceAdapter:
    global _default_store
    if _default_store is None:
        _default_store = FileSystemDesignStore()
    return _default_store


def set_design_store(store: Optional[PersistenceAdapter]) -> None:
    global _default_store
    _default_store = store


__all__ = [
    "PersistenceAdapter",
    "InMemoryDesignStore",
    "FileSystemDesignStore",
    "get_design_store",
    "set_design_store",
    "new_design_id",
]
