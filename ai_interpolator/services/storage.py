"""
Storage boundaries used by the pipeline.

- EntityStorage: load/save entities with save listeners and revision
  compare-and-swap
- LocalFileStorage: managed files under a local root with
  rename-on-exists
- TermStorage: taxonomy term lookup and creation

The in-memory implementations back the tests and small embedded hosts.
"""

import mimetypes
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ai_interpolator.core.context import SaveContext
from ai_interpolator.core.exceptions import ConcurrentModificationError, StoreError
from ai_interpolator.core.settings import get_settings
from ai_interpolator.models import Entity
from ai_interpolator.utils.logger import get_logger

logger = get_logger(__name__)


# =============================================================================
# ENTITIES
# =============================================================================


class SaveListener(ABC):
    """Receives the host save lifecycle."""

    async def presave(self, entity: Entity, is_insert: bool, context: SaveContext) -> None:
        """Called before the write; ``entity.original`` holds the stored values."""

    async def postsave(self, entity: Entity, is_insert: bool, context: SaveContext) -> None:
        """Called after the write; the entity has its id and new revision."""


class EntityStorage(ABC):
    """Entity persistence."""

    def __init__(self) -> None:
        self._listeners: List[SaveListener] = []

    def add_listener(self, listener: SaveListener) -> None:
        self._listeners.append(listener)

    @abstractmethod
    async def load(self, entity_type: str, entity_id: Any) -> Optional[Entity]:
        """Load a fresh copy, or None when the entity does not exist."""

    @abstractmethod
    async def save(
        self,
        entity: Entity,
        context: Optional[SaveContext] = None,
        expected_revision: Optional[int] = None,
    ) -> Entity:
        """
        Save an entity.

        Raises:
            ConcurrentModificationError: ``expected_revision`` no longer
                matches the stored revision
        """

    @abstractmethod
    async def delete(self, entity_type: str, entity_id: Any) -> None:
        pass


class InMemoryEntityStorage(EntityStorage):
    """Dictionary-backed entity storage."""

    def __init__(self) -> None:
        super().__init__()
        self._entities: Dict[Tuple[str, str], Entity] = {}
        self._next_id: Dict[str, int] = {}

    @staticmethod
    def _key(entity_type: str, entity_id: Any) -> Tuple[str, str]:
        return (entity_type, str(entity_id))

    async def load(self, entity_type: str, entity_id: Any) -> Optional[Entity]:
        stored = self._entities.get(self._key(entity_type, entity_id))
        return stored.copy() if stored is not None else None

    async def save(
        self,
        entity: Entity,
        context: Optional[SaveContext] = None,
        expected_revision: Optional[int] = None,
    ) -> Entity:
        context = context or SaveContext()
        if entity.id is None:
            self._next_id[entity.entity_type] = self._next_id.get(entity.entity_type, 0) + 1
            entity.id = self._next_id[entity.entity_type]

        key = self._key(entity.entity_type, entity.id)
        current = self._entities.get(key)
        is_insert = current is None
        entity.original = current.snapshot() if current is not None else {}

        for listener in self._listeners:
            await listener.presave(entity, is_insert, context)

        # No suspension point between the revision check and the write
        current = self._entities.get(key)
        current_revision = current.revision if current is not None else 0
        if expected_revision is not None and current_revision != expected_revision:
            raise ConcurrentModificationError(
                entity.entity_type, entity.id, expected_revision, current_revision
            )
        entity.revision = current_revision + 1
        stored = entity.copy()
        stored.original = None
        self._entities[key] = stored

        for listener in self._listeners:
            await listener.postsave(entity, is_insert, context)

        entity.original = None
        return entity

    async def delete(self, entity_type: str, entity_id: Any) -> None:
        self._entities.pop(self._key(entity_type, entity_id), None)


# =============================================================================
# FILES
# =============================================================================


@dataclass
class ManagedFile:
    """A file tracked by the file storage."""
    fid: int
    uri: str
    filename: str
    mime_type: str
    size: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "fid": self.fid,
            "uri": self.uri,
            "filename": self.filename,
            "mime_type": self.mime_type,
            "size": self.size,
        }


class LocalFileStorage:
    """
    Managed files below a local root directory.

    ``public://images/cat.jpg`` maps to ``<root>/public/images/cat.jpg``.
    Writing onto an existing name renames the new file to ``cat_0.jpg``,
    ``cat_1.jpg`` and so on.
    """

    def __init__(self, root: Optional[str] = None):
        self.root = Path(root or get_settings().file_storage_root)
        self._files: Dict[int, ManagedFile] = {}
        self._next_fid = 0

    def real_path(self, uri: str) -> Path:
        scheme, sep, target = uri.partition("://")
        if not sep:
            scheme, target = get_settings().file_default_scheme, uri
        relative = Path(target)
        if relative.is_absolute() or ".." in relative.parts:
            raise StoreError(f"Invalid file uri: {uri}")
        return self.root / scheme / relative

    def exists(self, uri: str) -> bool:
        return self.real_path(uri).exists()

    def _available_uri(self, uri: str) -> str:
        if not self.exists(uri):
            return uri
        base, sep, name = uri.rpartition("/")
        stem, dot, ext = name.rpartition(".")
        if not dot:
            stem, ext = name, ""
        counter = 0
        while True:
            candidate_name = f"{stem}_{counter}{dot}{ext}"
            candidate = f"{base}{sep}{candidate_name}"
            if not self.exists(candidate):
                return candidate
            counter += 1

    def write_data(self, data: bytes, destination: str, mime_type: Optional[str] = None) -> ManagedFile:
        """
        Write bytes to a managed file, renaming on collision.

        Raises:
            StoreError: The file could not be written
        """
        uri = self._available_uri(destination)
        path = self.real_path(uri)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise StoreError(f"Could not write {uri}: {e}", details={"uri": uri})

        self._next_fid += 1
        managed = ManagedFile(
            fid=self._next_fid,
            uri=uri,
            filename=path.name,
            mime_type=mime_type or mimetypes.guess_type(path.name)[0] or "application/octet-stream",
            size=len(data),
        )
        self._files[managed.fid] = managed
        logger.debug("Managed file written", uri=uri, fid=managed.fid, size=managed.size)
        return managed

    def register(self, uri: str, mime_type: Optional[str] = None) -> ManagedFile:
        """Track an existing file (e.g. uploaded by the host)."""
        path = self.real_path(uri)
        if not path.exists():
            raise StoreError(f"File does not exist: {uri}", details={"uri": uri})
        self._next_fid += 1
        managed = ManagedFile(
            fid=self._next_fid,
            uri=uri,
            filename=path.name,
            mime_type=mime_type or mimetypes.guess_type(path.name)[0] or "application/octet-stream",
            size=path.stat().st_size,
        )
        self._files[managed.fid] = managed
        return managed

    def load(self, fid: Any) -> Optional[ManagedFile]:
        try:
            return self._files.get(int(fid))
        except (TypeError, ValueError):
            return None

    def read(self, uri: str) -> bytes:
        try:
            return self.real_path(uri).read_bytes()
        except OSError as e:
            raise StoreError(f"Could not read {uri}: {e}", details={"uri": uri})

    def delete(self, managed: ManagedFile) -> None:
        """Remove a managed file; missing files are ignored."""
        self.real_path(managed.uri).unlink(missing_ok=True)
        self._files.pop(managed.fid, None)


# =============================================================================
# TAXONOMY TERMS
# =============================================================================


class TermStorage(ABC):
    """Taxonomy term lookup and creation."""

    @abstractmethod
    def list_terms(self, vocabularies: List[str]) -> List[Dict[str, Any]]:
        """Terms (``tid``, ``name``, ``vid``) of the vocabularies, in vocabulary order."""

    @abstractmethod
    def create(self, vocabulary: str, name: str) -> Dict[str, Any]:
        """Create a term and return it."""

    def find_by_name(self, vocabularies: List[str], name: str) -> List[Dict[str, Any]]:
        return [term for term in self.list_terms(vocabularies) if term["name"] == name]


class InMemoryTermStorage(TermStorage):
    """List-backed term storage."""

    def __init__(self, terms: Optional[List[Dict[str, Any]]] = None):
        self._terms: List[Dict[str, Any]] = []
        self._next_tid = 0
        for term in terms or []:
            self._add(term["vid"], term["name"], term.get("tid"))

    def _add(self, vocabulary: str, name: str, tid: Optional[int] = None) -> Dict[str, Any]:
        if tid is None:
            tid = self._next_tid + 1
        self._next_tid = max(self._next_tid, tid)
        term = {"tid": tid, "name": name, "vid": vocabulary}
        self._terms.append(term)
        return term

    def list_terms(self, vocabularies: List[str]) -> List[Dict[str, Any]]:
        return [
            dict(term)
            for vocabulary in vocabularies
            for term in self._terms
            if term["vid"] == vocabulary
        ]

    def create(self, vocabulary: str, name: str) -> Dict[str, Any]:
        term = self._add(vocabulary, name)
        logger.info("Taxonomy term created", vid=vocabulary, name=name, tid=term["tid"])
        return dict(term)
