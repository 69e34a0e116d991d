"""Source document discovery for Perseus.

The pipeline core consumes documents only as (relative path, front matter,
body) tuples. This module is the file-based collaborator that produces them:
it walks the source directory, extracts YAML front matter and assigns each
file to a collection.

Key classes:
- Document: One source file as seen by the pipeline.
- FileContentLoader: Discovers documents under a source directory.

Key functions:
- extract_frontmatter: Split YAML front matter from a body.
- load_data: Load ``_data`` YAML files into a mapping.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any

import yaml

from .config import Configuration

logger = logging.getLogger(__name__)

FRONTMATTER_RE = re.compile(r"^---\s*\n(.*?)\n---\s*\n", re.DOTALL)

# Directories under the source dir that never hold documents
RESERVED_DIRS = ("_layouts", "_partials", "_components", "_data")


def extract_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Extract YAML frontmatter from content.

    Args:
        text: Raw file content.

    Returns:
        Tuple of (frontmatter dict, remaining content).
    """
    match = FRONTMATTER_RE.match(text)
    if not match:
        return {}, text
    try:
        data = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as exc:
        logger.warning("Ignoring malformed front matter: %s", exc)
        return {}, text
    if not isinstance(data, dict):
        return {}, text
    return data, text[match.end() :]


@dataclass
class Document:
    """A source document handed to the pipeline.

    Attributes:
        relative_path: POSIX path relative to the source directory,
            e.g. ``_pages/about.fr.md``.
        front_matter: Parsed front matter mapping.
        body: Text after the front matter.
        collection: Name of the collection the document belongs to.
        source_path: Absolute path on disk, when read from a file.
    """

    relative_path: PurePosixPath
    front_matter: dict[str, Any] = field(default_factory=dict)
    body: str = ""
    collection: str = "pages"
    source_path: Path | None = None

    def __post_init__(self) -> None:
        self.relative_path = PurePosixPath(self.relative_path)

    @property
    def name(self) -> str:
        return self.relative_path.name

    @property
    def extension(self) -> str:
        """Lower-case final extension without the dot (``md``, ``jinja``)."""
        return self.relative_path.suffix.lower().lstrip(".")

    @property
    def collection_path(self) -> PurePosixPath:
        """Path inside the collection directory (``_pages/a/b.md`` -> ``a/b.md``)."""
        parts = self.relative_path.parts
        if parts and parts[0] == f"_{self.collection}":
            return PurePosixPath(*parts[1:])
        return self.relative_path


class FileContentLoader:
    """Discovers documents in a source directory.

    Files directly under the source directory (or in plain sub-folders) belong
    to ``pages``; files under ``_<name>/`` belong to the collection ``name``
    when it is configured. Traversal is sorted so collection order is
    deterministic.

    Component directories, wherever they are configured, are never read as
    documents; neither are the layouts, partials and data directories.

    Attributes:
        config: Site configuration.
        extensions: File extensions treated as documents.
        excluded_dirs: Directories whose files are never documents.
    """

    def __init__(self, config: Configuration, extensions: tuple[str, ...]):
        self.config = config
        self.extensions = tuple(ext.lower() for ext in extensions)
        self.excluded_dirs = (
            *config.components_load_paths,
            *(config.in_source_dir(name) for name in RESERVED_DIRS),
        )

    def iter_files(self) -> list[Path]:
        """Return every document file under the source directory, sorted."""
        source = self.config.source_dir
        if not source.exists():
            return []
        files: list[Path] = []
        for path in sorted(source.rglob("*")):
            if path.is_dir():
                continue
            rel = path.relative_to(source)
            if self._is_excluded(path):
                continue
            if self._collection_for(rel) is None:
                continue
            if rel.name.startswith("_"):
                continue
            if path.suffix.lower().lstrip(".") in self.extensions:
                files.append(path)
        return files

    def _is_excluded(self, path: Path) -> bool:
        return any(directory in path.parents for directory in self.excluded_dirs)

    def _collection_for(self, rel: Path) -> str | None:
        parts = rel.parts
        folders = parts[:-1]
        if not folders:
            return "pages"
        top = folders[0]
        if top in RESERVED_DIRS:
            return None
        if top.startswith("_"):
            name = top[1:]
            if name in self.config.collections and not any(
                part.startswith("_") for part in folders[1:]
            ):
                return name
            return None
        if any(part.startswith("_") for part in folders):
            return None
        return "pages"

    def load(self) -> list[Document]:
        """Read and parse every discovered file.

        Returns:
            Documents in discovery order.
        """
        documents: list[Document] = []
        for path in self.iter_files():
            rel = path.relative_to(self.config.source_dir)
            raw = path.read_text(**self.config.file_read_opts)
            front_matter, body = extract_frontmatter(raw)
            documents.append(
                Document(
                    relative_path=PurePosixPath(rel.as_posix()),
                    front_matter=front_matter,
                    body=body,
                    collection=self._collection_for(rel) or "pages",
                    source_path=path,
                )
            )
        logger.debug("Discovered %d documents in %s", len(documents), self.config.source_dir)
        return documents


def load_data(config: Configuration) -> dict[str, Any]:
    """Load site data from YAML files in the ``_data`` directory.

    One level of sub-directories is read as well: ``_data/locales/fr.yaml``
    lands at ``data["locales"]["fr"]``, merged over any mapping loaded from
    ``_data/locales.yaml``.

    Args:
        config: Site configuration.

    Returns:
        Mapping of file stem to parsed content; ``site.yaml`` merges into the top level.
    """
    data_dir = config.source_dir / "_data"
    data: dict[str, Any] = {}
    if not data_dir.exists():
        return data
    for path in _yaml_files(data_dir):
        payload = _read_yaml(path, config)
        if payload is None:
            continue
        if path.stem == "site" and isinstance(payload, dict):
            data.update(payload)
        else:
            data[path.stem] = payload
    for directory in sorted(p for p in data_dir.iterdir() if p.is_dir()):
        nested = data.get(directory.name)
        if not isinstance(nested, dict):
            nested = {}
        for path in _yaml_files(directory):
            payload = _read_yaml(path, config)
            if payload is not None:
                nested[path.stem] = payload
        if nested:
            data[directory.name] = nested
    return data


def _yaml_files(directory: Path) -> list[Path]:
    return sorted([*directory.glob("*.yaml"), *directory.glob("*.yml")])


def _read_yaml(path: Path, config: Configuration) -> Any:
    with open(path, **config.file_read_opts) as f:
        return yaml.safe_load(f)
