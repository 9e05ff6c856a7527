"""
File-backed document store.

Documents live under a docs root and are addressed by id (file stem):

  docs/tech-stack.md                 monolithic: sections are its ## headings
  docs/architecture/index.md         sharded: "architecture" is the index,
  docs/architecture/tech-stack.md    each child file is a section

Child files of a sharded document are also documents in their own right,
so "tech-stack" resolves whether the architecture was sharded or not.
When two files share a stem, the shallowest path wins.
"""

import logging
import re
from pathlib import Path
from typing import Optional

from storyprep.docs.markdown import split_sections
from storyprep.errors import DocumentReadFailed

logger = logging.getLogger(__name__)

INDEX_FILE = "index.md"
LINK_RE = re.compile(r'\]\(\.?/?([^)#\s]+)\.md(?:#[^)]*)?\)')


class DocumentNotFound(Exception):
    """Requested document does not exist in the store."""

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}")


class FileDocumentStore:
    """Read-only view of a docs tree.

    The tree is indexed once on construction; fetches after that are plain
    file reads and safe to run from several threads.
    """

    def __init__(self, root: Path, exclude: Optional[list[Path]] = None):
        self.root = Path(root)
        self._exclude = [Path(p).resolve() for p in (exclude or [])]
        self._files: dict[str, Path] = {}
        self._shards: dict[str, Path] = {}
        self._index()

    def _excluded(self, path: Path) -> bool:
        resolved = path.resolve()
        return any(resolved == ex or ex in resolved.parents for ex in self._exclude)

    def _index(self) -> None:
        if not self.root.is_dir():
            logger.warning(f"Docs root does not exist: {self.root}")
            return

        paths = sorted(self.root.rglob("*.md"), key=lambda p: (len(p.relative_to(self.root).parts), str(p)))
        for path in paths:
            if self._excluded(path):
                continue
            if path.name == INDEX_FILE:
                doc_id = path.parent.name
                if path.parent != self.root and doc_id not in self._files and doc_id not in self._shards:
                    self._shards[doc_id] = path.parent
                continue
            doc_id = path.stem
            if doc_id in self._files or doc_id in self._shards:
                logger.debug(f"Duplicate document id '{doc_id}' at {path}, keeping first")
                continue
            self._files[doc_id] = path

    def list_documents(self, area: Optional[str] = None) -> list[str]:
        """List document ids, optionally only those under docs/<area>/."""
        ids = []
        for doc_id, path in {**self._files, **self._shards}.items():
            if area is not None:
                rel = path.relative_to(self.root).parts
                if not rel or rel[0] != area or (doc_id in self._shards and len(rel) == 1):
                    continue
            ids.append(doc_id)
        return sorted(ids)

    def has_document(self, document_id: str) -> bool:
        return document_id in self._files or document_id in self._shards

    def is_sharded(self, document_id: str) -> bool:
        if document_id in self._shards:
            return True
        if document_id in self._files:
            return False
        raise DocumentNotFound(document_id)

    def _read(self, document_id: str, path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise DocumentReadFailed(document_id, path, str(e)) from e

    def _shard_children(self, document_id: str, shard_dir: Path) -> list[str]:
        children = sorted(
            p.stem for p in shard_dir.glob("*.md")
            if p.name != INDEX_FILE and not self._excluded(p)
        )
        index_text = self._read(document_id, shard_dir / INDEX_FILE)
        ordered = []
        for match in LINK_RE.finditer(index_text):
            stem = Path(match.group(1)).name
            if stem in children and stem not in ordered:
                ordered.append(stem)
        return ordered + [c for c in children if c not in ordered]

    def list_sections(self, document_id: str) -> list[Optional[str]]:
        """Section anchors in document order.

        A monolithic document without ## headings has a single section, None;
        one with ## headings lists None first when it has a preamble.

        Raises:
            DocumentNotFound: if the document does not exist
            DocumentReadFailed: if the file cannot be read or decoded
        """
        if document_id in self._shards:
            return self._shard_children(document_id, self._shards[document_id])
        if document_id in self._files:
            text = self._read(document_id, self._files[document_id])
            return [s.anchor for s in split_sections(text)]
        raise DocumentNotFound(document_id)

    def read_section(self, document_id: str, anchor: Optional[str] = None) -> Optional[str]:
        """Return section text, or None when the document or section is not found."""
        if document_id in self._shards:
            shard_dir = self._shards[document_id]
            path = shard_dir / (f"{anchor}.md" if anchor else INDEX_FILE)
            if not path.exists():
                return None
            return self._read(document_id, path)

        path = self._files.get(document_id)
        if path is None:
            return None
        text = self._read(document_id, path)
        for section in split_sections(text):
            if section.anchor == anchor:
                return section.body
        return None

    def read_document(self, document_id: str) -> Optional[str]:
        """Whole document text; sharded documents are joined in section order."""
        if document_id in self._shards:
            parts = [self.read_section(document_id, None) or ""]
            parts.extend(self.read_section(document_id, a) or "" for a in self.list_sections(document_id))
            return "\n\n".join(p.strip() for p in parts if p.strip())
        path = self._files.get(document_id)
        return self._read(document_id, path) if path else None
