"""Site configuration for Perseus.

The configuration store is an immutable snapshot of the resolved site settings.
It is taken once at site-configuration time and consumed read-only by the
locale resolver, the collections and the renderers.

Key classes:
- Locale: A language tag plus whether it is the site's default.
- PermalinkStyle: The built-in permalink styles.
- Configuration: Frozen snapshot of every recognized setting.

Key functions:
- load_config: Read perseus.yaml from a project root.
"""

from __future__ import annotations

import copy
import enum
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from .paths import resolve

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "perseus.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "root_dir": ".",
    "source": "src",
    "destination": "output",
    "cache_dir": ".perseus-cache",
    "permalink": "pretty",
    "base_path": "/",
    "components_dir": "_components",
    "disable_disk_cache": False,
    "encoding": None,
    "locales": ["en"],
    "default_locale": None,
    "collections": ["pages", "posts"],
    "template_engine": "jinja",
}


class ConfigurationError(ValueError):
    """Error raised for configuration values that cannot be resolved."""


class PermalinkStyle(str, enum.Enum):
    """Built-in permalink styles.

    Any other string is treated as a custom pattern.
    """

    PRETTY = "pretty"
    SIMPLE = "simple"


@dataclass(frozen=True)
class Locale:
    """A locale the site renders for.

    Attributes:
        tag: Language tag such as ``en`` or ``fr``.
        default: Whether this is the site's designated default locale.
    """

    tag: str
    default: bool = False

    def __str__(self) -> str:
        return self.tag


def _parse_locales(raw: Any, default_tag: Any) -> tuple[Locale, ...]:
    """Normalize the ``locales`` setting into an ordered tuple of Locale.

    Accepts a list of tags (with ``default_locale`` naming the default, or the
    first entry otherwise) or a list of ``{tag, default}`` mappings.
    """
    if not raw:
        raw = ["en"]
    if isinstance(raw, str):
        raw = [raw]

    entries: list[tuple[str, bool]] = []
    for item in raw:
        if isinstance(item, Mapping):
            tag = str(item.get("tag", "")).strip()
            flagged = bool(item.get("default", False))
        else:
            tag = str(item).strip()
            flagged = False
        if not tag:
            raise ConfigurationError("Locale entries must have a non-empty tag")
        if any(tag == seen for seen, _ in entries):
            raise ConfigurationError(f"Locale '{tag}' is listed more than once")
        entries.append((tag, flagged))

    if default_tag:
        default_tag = str(default_tag)
        if default_tag not in [tag for tag, _ in entries]:
            raise ConfigurationError(
                f"default_locale '{default_tag}' is not one of the configured locales"
            )
        entries = [(tag, tag == default_tag or flagged) for tag, flagged in entries]

    defaults = [tag for tag, flagged in entries if flagged]
    if not defaults:
        first_tag, _ = entries[0]
        entries[0] = (first_tag, True)
    elif len(defaults) > 1:
        raise ConfigurationError(
            f"Exactly one default locale is allowed, got: {', '.join(defaults)}"
        )
    return tuple(Locale(tag, flagged) for tag, flagged in entries)


def _parse_permalink(raw: Any) -> PermalinkStyle | str:
    value = str(raw or PermalinkStyle.PRETTY.value).strip()
    if not value:
        raise ConfigurationError("permalink must not be empty")
    try:
        return PermalinkStyle(value)
    except ValueError:
        if ":" not in value and "/" not in value:
            raise ConfigurationError(
                f"Unknown permalink style '{value}'; use pretty, simple or a pattern"
            ) from None
        return value


def _parse_base_path(config: Mapping[str, Any]) -> str:
    raw = config.get("base_path")
    if raw in (None, "", "/") and config.get("baseurl"):
        logger.warning("The 'baseurl' option is deprecated; use 'base_path' instead")
        raw = config["baseurl"]
    path = str(raw or "/").strip()
    if not path.startswith("/"):
        path = f"/{path}"
    path = path.rstrip("/")
    return path or "/"


@dataclass(frozen=True)
class Configuration:
    """Immutable snapshot of the resolved site configuration.

    Build it with :meth:`from_mapping`; the mapping is deep-copied so the
    caller can keep mutating its own object without affecting the snapshot.

    Attributes:
        root_dir: Absolute project root.
        source_dir: Absolute source directory.
        destination_dir: Absolute output directory.
        cache_dir: Absolute cache directory.
        permalink_style: A PermalinkStyle or a custom pattern string.
        locales: Ordered locales, exactly one flagged default.
        components_load_paths: Directories searched for component templates.
        collections: Names of the configured resource collections.
        template_engine: Engine extension used to pre-render document bodies.
        disable_disk_cache: Keep caches in memory only.
        file_read_opts: Keyword arguments for reading source files.
    """

    root_dir: Path
    source_dir: Path
    destination_dir: Path
    cache_dir: Path
    permalink_style: PermalinkStyle | str
    locales: tuple[Locale, ...]
    components_load_paths: tuple[Path, ...]
    collections: tuple[str, ...]
    template_engine: str
    disable_disk_cache: bool
    file_read_opts: Mapping[str, str]
    raw: Mapping[str, Any] = field(repr=False)
    _base_path: str = field(repr=False, default="/")

    @classmethod
    def from_mapping(
        cls, config: Mapping[str, Any], root_dir: str | os.PathLike[str] | None = None
    ) -> Configuration:
        """Resolve a raw configuration mapping into a snapshot.

        Args:
            config: Raw settings, usually DEFAULT_CONFIG merged with perseus.yaml.
            root_dir: Directory relative paths are anchored to. Defaults to the
                ``root_dir`` key, then the current working directory.

        Returns:
            A frozen Configuration.

        Raises:
            ConfigurationError: If locales or the permalink style are invalid.
        """
        merged = copy.deepcopy(DEFAULT_CONFIG)
        merged.update(copy.deepcopy(dict(config)))

        root = Path(os.path.abspath(root_dir or merged.get("root_dir") or "."))
        source = Path(os.path.abspath(root / str(merged["source"])))
        destination = Path(os.path.abspath(root / str(merged["destination"])))
        cache_dir = resolve(root, str(merged["cache_dir"]))

        encoding = merged.get("encoding")
        file_read_opts = {"encoding": str(encoding) if encoding else "utf-8"}

        collections = merged.get("collections") or ["pages"]
        if isinstance(collections, str):
            collections = [collections]
        names = tuple(dict.fromkeys(str(name) for name in collections))
        if "pages" not in names:
            names = ("pages", *names)

        return cls(
            root_dir=root,
            source_dir=source,
            destination_dir=destination,
            cache_dir=cache_dir,
            permalink_style=_parse_permalink(merged.get("permalink")),
            locales=_parse_locales(
                merged.get("locales") or merged.get("available_locales"),
                merged.get("default_locale"),
            ),
            components_load_paths=_components_load_paths(
                merged.get("components_dir"), root, source
            ),
            collections=names,
            template_engine=str(merged.get("template_engine") or "jinja").lower(),
            disable_disk_cache=bool(merged.get("disable_disk_cache")),
            file_read_opts=MappingProxyType(file_read_opts),
            raw=MappingProxyType(merged),
            _base_path=_parse_base_path(merged),
        )

    def __getitem__(self, key: str) -> Any:
        return self.raw[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self.raw.get(key, default)

    def base_path(self, strip_slash_only: bool = False) -> str:
        """Return the path the site is served from.

        Args:
            strip_slash_only: Return ``""`` instead of ``"/"`` for root sites.

        Returns:
            Base path such as ``/basefolder`` or ``/``.
        """
        if strip_slash_only and self._base_path == "/":
            return ""
        return self._base_path

    @property
    def default_locale(self) -> Locale:
        return next(locale for locale in self.locales if locale.default)

    def locale(self, tag: str) -> Locale | None:
        """Look up a configured locale by tag."""
        for locale in self.locales:
            if locale.tag == tag:
                return locale
        return None

    def in_root_dir(self, *paths: str) -> Path:
        return resolve(self.root_dir, *paths)

    def in_source_dir(self, *paths: str) -> Path:
        return resolve(self.source_dir, *paths)

    def in_dest_dir(self, *paths: str) -> Path:
        return resolve(self.destination_dir, *paths)

    def in_cache_dir(self, *paths: str) -> Path:
        return resolve(self.cache_dir, *paths)


def _components_load_paths(raw: Any, root: Path, source: Path) -> tuple[Path, ...]:
    """Resolve ``components_dir`` into absolute directories.

    ``./dir`` and ``../dir`` entries are anchored to the project root; anything
    else lives inside the source directory.
    """
    if not raw:
        return ()
    entries = raw if isinstance(raw, (list, tuple)) else [raw]
    paths: list[Path] = []
    for entry in entries:
        text = str(entry)
        if text.startswith(("./", "../")):
            paths.append(Path(os.path.normpath(root / text)))
        else:
            paths.append(resolve(source, text))
    return tuple(paths)


def load_config(project_root: Path) -> dict[str, Any]:
    """Load site configuration from perseus.yaml.

    Args:
        project_root: Root directory of the project.

    Returns:
        Dictionary containing configuration values, with defaults applied.

    Raises:
        ConfigurationError: If the file is not valid YAML or not a mapping.
    """
    config_path = project_root / CONFIG_FILENAME
    config = copy.deepcopy(DEFAULT_CONFIG)
    config["root_dir"] = str(project_root)
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            try:
                loaded = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigurationError(f"{config_path}: {exc}") from exc
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"{config_path}: expected a mapping at top level")
        config.update(loaded)
    return config
