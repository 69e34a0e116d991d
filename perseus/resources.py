"""Resources for Perseus.

A Resource is one renderable (document x locale) unit. Two resources built
from the same source file for different locales are distinct entities with
distinct permalinks.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Any

from .config import Locale
from .permalinks import document_date
from .utils import titleize

if TYPE_CHECKING:
    from .collections import ResourceCollection
    from .content import Document


class Resource:
    """One document rendered for one locale.

    Attributes:
        document: Source document the resource was produced from.
        locale: Locale the resource renders for.
        data: Front matter merged with the locale's overrides.
        permalink: Site path without the base path, e.g. ``/fr/about/``.
        relative_url: Final URL including the base path; always starts with ``/``.
        content: Rendered body, before layouts are applied.
        output: Final rendered string, set once rendering completes.
        collection: Collection the resource is registered in.
    """

    def __init__(
        self,
        document: Document,
        locale: Locale,
        data: dict[str, Any] | None = None,
        permalink: str = "",
        relative_url: str = "",
    ):
        self._written = False
        self.document = document
        self.locale = locale
        self.data: dict[str, Any] = data if data is not None else dict(document.front_matter)
        self.permalink = permalink
        self.relative_url = relative_url
        self.content: str | None = None
        self.output: str | None = None
        self.collection: ResourceCollection | None = None

    def __setattr__(self, name: str, value: Any) -> None:
        if getattr(self, "_written", False):
            raise AttributeError(
                f"Resource {self.relative_path} ({self.locale.tag}) is read-only once written"
            )
        super().__setattr__(name, value)

    def __repr__(self) -> str:
        return f"Resource({self.relative_path.as_posix()!r}, locale={self.locale.tag!r}, url={self.relative_url!r})"

    @property
    def relative_path(self) -> PurePosixPath:
        return self.document.relative_path

    @property
    def identity(self) -> tuple[str, str]:
        """The (relative path, locale tag) pair that identifies this resource."""
        return self.relative_path.as_posix(), self.locale.tag

    @property
    def title(self) -> str:
        return str(self.data.get("title") or titleize(self.relative_path.name))

    @property
    def date(self) -> datetime | None:
        return document_date(self.document)

    @property
    def layout(self) -> str | None:
        layout = self.data.get("layout")
        return str(layout) if layout else None

    @property
    def written(self) -> bool:
        return self._written

    def mark_written(self) -> None:
        """Freeze the resource after the writer has emitted it."""
        super().__setattr__("_written", True)
