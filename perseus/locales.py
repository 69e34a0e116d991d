"""Locale resolution for Perseus.

Decides which locales a source document is rendered for and composes the
locale-aware permalink of each (document x locale) combination.

Key functions:
- split_locale_suffix: Separate ``name.fr`` into ``("name", "fr")``.

Key classes:
- LocaleResolver: Locale policy and permalink composition for one site.
"""

from __future__ import annotations

import copy
import logging
from typing import TYPE_CHECKING, Any

from . import permalinks
from .config import Configuration, Locale, PermalinkStyle
from .utils import deep_merge

if TYPE_CHECKING:
    from .content import Document

logger = logging.getLogger(__name__)

# Front matter values of ``locale`` that request every configured locale
MULTI_LOCALE_VALUES = ("multi", "all", "*")


def split_locale_suffix(name: str, tags: tuple[str, ...] | list[str]) -> tuple[str, str | None]:
    """Split a configured locale suffix off a filename stem.

    Only suffixes that match a configured tag count, so ``release.v2`` is
    left alone.

    Args:
        name: Filename with its final extension already removed.
        tags: Configured locale tags.

    Returns:
        Tuple of (stem without the suffix, matched tag or None).
    """
    stem, dot, suffix = name.rpartition(".")
    if dot and stem and suffix in tags:
        return stem, suffix
    return name, None


class LocaleResolver:
    """Locale policy and permalink composition.

    Attributes:
        config: Site configuration the resolver reads locales and styles from.
    """

    def __init__(self, config: Configuration):
        self.config = config

    @property
    def tags(self) -> tuple[str, ...]:
        return tuple(locale.tag for locale in self.config.locales)

    def _split_name(self, document: Document) -> tuple[str, str | None]:
        path = document.relative_path
        base = path.name[: -len(path.suffix)] if path.suffix else path.name
        if base.lower().endswith(".html"):
            base = base[: -len(".html")]
        return split_locale_suffix(base, self.tags)

    def stem_for(self, document: Document) -> str:
        """Return the document's filename stem without extensions or locale."""
        stem, _ = self._split_name(document)
        return stem

    def filename_locale(self, document: Document) -> Locale | None:
        _, tag = self._split_name(document)
        return self.config.locale(tag) if tag else None

    def locales_for(self, document: Document) -> list[Locale]:
        """Determine the locales a document produces resources for.

        Precedence: an explicit list in front matter (``locales: [en, fr]`` or
        ``locale: multi``), then a filename suffix matching a configured
        locale, then a single ``locale`` in front matter, then the default.

        Args:
            document: Source document.

        Returns:
            Non-empty list of locales, in configuration order for lists.
        """
        front_matter = document.front_matter
        declared = front_matter.get("locales")
        single = front_matter.get("locale")

        if declared is None and isinstance(single, str) and single in MULTI_LOCALE_VALUES:
            return list(self.config.locales)
        if isinstance(single, (list, tuple)) and declared is None:
            declared = single

        if declared is not None:
            if isinstance(declared, str):
                declared = [declared]
            wanted = [str(tag) for tag in declared]
            unknown = [tag for tag in wanted if tag not in self.tags]
            if unknown:
                logger.warning(
                    "%s: ignoring unconfigured locales %s",
                    document.relative_path,
                    ", ".join(unknown),
                )
            chosen = [locale for locale in self.config.locales if locale.tag in wanted]
            if chosen:
                return chosen
            return [self.config.default_locale]

        from_name = self.filename_locale(document)
        if from_name is not None:
            return [from_name]

        if single:
            locale = self.config.locale(str(single))
            if locale is not None:
                return [locale]
            logger.warning(
                "%s: locale '%s' is not configured; using default",
                document.relative_path,
                single,
            )
        return [self.config.default_locale]

    def localized_data(self, document: Document, locale: Locale) -> dict[str, Any]:
        """Merge a document's front matter with its overrides for a locale.

        ``locale_overrides: {fr: {title: ...}}`` is deep-merged over a copy of
        the front matter and ``locale`` is set to the locale tag.
        """
        data = copy.deepcopy(document.front_matter)
        overrides = data.pop("locale_overrides", None) or {}
        if isinstance(overrides, dict) and isinstance(overrides.get(locale.tag), dict):
            deep_merge(data, overrides[locale.tag])
        data.pop("locales", None)
        data["locale"] = locale.tag
        return data

    def permalink_for(
        self, document: Document, locale: Locale, base_path: str | None = None
    ) -> str:
        """Compose a document's final URL for one locale.

        Applied in order: (a) the explicit front matter permalink, else the
        style pattern, with placeholders substituted; (b) a ``/<tag>`` prefix
        for non-default locales, unless the pattern places ``:locale`` itself;
        (c) the base path, unless it is empty or ``/``.

        Args:
            document: Source document.
            locale: Locale being rendered.
            base_path: Base path to prefix; defaults to the configured one.

        Returns:
            URL starting with ``/`` and free of ``//``.
        """
        style = self.config.permalink_style
        segment = "" if locale.default else locale.tag
        pattern = permalinks.pattern_for(document, style)
        values = permalinks.placeholder_values(document, self.stem_for(document), segment)
        url = permalinks.normalize(permalinks.expand(pattern, values), style)
        if segment and ":locale" not in pattern and ":lang" not in pattern:
            url = f"/{segment}{url}"
        if base_path is None:
            base_path = self.config.base_path()
        prefix = (base_path or "").strip().rstrip("/")
        if prefix:
            if not prefix.startswith("/"):
                prefix = f"/{prefix}"
            url = f"{prefix}{url}"
        return permalinks.collapse_slashes(url)
