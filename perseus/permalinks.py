"""Permalink patterns for Perseus.

A permalink pattern is a URL template with ``:placeholder`` tokens, for
example ``/:collection/:year/:month/:day/:slug/``. This module picks the
pattern for a document, fills the tokens in and normalizes the result to the
conventions of the configured style.

Locale prefixes and the base path are applied by the locale resolver on top
of what this module produces.
"""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from .config import PermalinkStyle
from .utils import coerce_date, extract_date_from_name, slugify

if TYPE_CHECKING:
    from .content import Document

PLACEHOLDER_RE = re.compile(r":([a-z_]+)")

STYLE_PATTERNS: dict[PermalinkStyle, dict[str, str]] = {
    PermalinkStyle.PRETTY: {
        "pages": "/:path/",
        "dated": "/:collection/:year/:month/:day/:slug/",
        "default": "/:collection/:slug/",
    },
    PermalinkStyle.SIMPLE: {
        "pages": "/:path.html",
        "dated": "/:collection/:slug.html",
        "default": "/:collection/:slug.html",
    },
}


def document_date(document: Document) -> datetime | None:
    """Return the document's date from front matter or its filename prefix."""
    value = coerce_date(document.front_matter.get("date"))
    if value is not None:
        return value
    return extract_date_from_name(document.relative_path.name)


def pattern_for(document: Document, style: PermalinkStyle | str) -> str:
    """Pick the permalink pattern for a document.

    An explicit ``permalink`` in front matter wins; otherwise the style's
    pattern for the document's collection is used.

    Args:
        document: Source document.
        style: Configured permalink style or custom pattern.

    Returns:
        A pattern string, possibly containing placeholders.
    """
    explicit = document.front_matter.get("permalink")
    if explicit:
        return str(explicit)
    if not isinstance(style, PermalinkStyle):
        return style
    patterns = STYLE_PATTERNS[style]
    if document.collection == "pages":
        return patterns["pages"]
    if document_date(document) is not None:
        return patterns["dated"]
    return patterns["default"]


def placeholder_values(document: Document, stem: str, locale_segment: str) -> dict[str, str]:
    """Compute the values available to a permalink pattern.

    Args:
        document: Source document.
        stem: Filename stem with extensions and locale suffix removed.
        locale_segment: Locale tag, or ``""`` for the default locale.

    Returns:
        Mapping of placeholder name to value.
    """
    front_matter = document.front_matter
    folder = document.collection_path.parent
    path = (folder / stem).as_posix() if folder != PurePosixPath(".") else stem
    slug = str(front_matter.get("slug") or slugify(stem))
    date = document_date(document)
    categories = front_matter.get("categories") or []
    if isinstance(categories, str):
        categories = categories.split()
    values = {
        "path": path,
        "collection": document.collection,
        "slug": slug,
        "name": stem,
        "title": slugify(str(front_matter["title"])) if front_matter.get("title") else slug,
        "categories": "/".join(slugify(str(c)) for c in categories),
        "locale": locale_segment,
        "lang": locale_segment,
        "year": "",
        "month": "",
        "day": "",
    }
    if date is not None:
        values.update(
            year=f"{date.year:04d}", month=f"{date.month:02d}", day=f"{date.day:02d}"
        )
    return values


def expand(pattern: str, values: dict[str, str]) -> str:
    """Replace ``:name`` tokens in pattern; unknown tokens are left untouched."""

    def repl(match: re.Match) -> str:
        key = match.group(1)
        return values[key] if key in values else match.group(0)

    return PLACEHOLDER_RE.sub(repl, pattern)


def collapse_slashes(url: str) -> str:
    url = re.sub(r"/{2,}", "/", url)
    return url if url.startswith("/") else f"/{url}"


def normalize(url: str, style: PermalinkStyle | str) -> str:
    """Apply the trailing conventions of a permalink style.

    ``pretty`` URLs end with ``/`` (a trailing ``index`` segment is dropped);
    ``simple`` URLs end with a literal extension. URLs whose last segment
    already carries an extension are left alone for both.

    Args:
        url: Expanded permalink.
        style: Configured permalink style or custom pattern.

    Returns:
        Normalized URL, always starting with ``/`` and free of ``//``.
    """
    url = collapse_slashes(url)
    trimmed = url.rstrip("/")
    last = trimmed.rsplit("/", 1)[-1]
    if style == PermalinkStyle.PRETTY:
        if last == "index":
            url = f"{trimmed[: -len(last)]}/"
        elif "." not in last or url.endswith("/"):
            url = f"{trimmed}/"
    elif style == PermalinkStyle.SIMPLE:
        last = url.rsplit("/", 1)[-1]
        if url.endswith("/"):
            url = f"{url}index.html"
        elif "." not in last:
            url = f"{url}.html"
    return collapse_slashes(url)
