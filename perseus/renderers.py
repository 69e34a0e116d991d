"""Template engines for Perseus.

This module resolves which rendering capability handles a file extension and
invokes it. Each engine handles a single kind of source; the registry lets new
engines be added without modifying existing code.

Key classes:
- JinjaTemplateEngine: Renders Jinja2 templates.
- MarkdownTemplateEngine: Renders Markdown to HTML with syntax highlighting.
- PlainTemplateEngine: Passes text through unchanged.
- EngineRegistry: Maps extensions to engine factories.

Key functions:
- render: Invoke an engine, wrapping failures in TemplateRenderError.
- find_template_path: Probe for a template file by base name and extension.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

import mistune
from jinja2 import Environment, Template, select_autoescape
from markupsafe import Markup

from .cache import Cache
from .protocols import TemplateEngine

logger = logging.getLogger(__name__)


class TemplateNotFoundError(Exception):
    """Error raised when no candidate template file exists.

    Attributes:
        identity: Component or template the lookup was made for.
        search_dir: Directory that was searched.
        candidates: Every path that was probed, in order.
    """

    def __init__(self, identity: str, search_dir: Path, candidates: list[Path]):
        self.identity = identity
        self.search_dir = search_dir
        self.candidates = candidates
        super().__init__(f"{identity}: no matching template could be found in {search_dir}")


class UnsupportedTemplateError(Exception):
    """Error raised when no engine is registered for an extension.

    Attributes:
        extension: The normalized extension that was requested.
        identity: Component or template that asked for it.
    """

    def __init__(self, extension: str, identity: str | None = None, reason: str | None = None):
        self.extension = extension
        self.identity = identity
        message = reason or f"No rendering engine could be found for .{extension} templates"
        super().__init__(f"{identity}: {message}" if identity else message)


class TemplateRenderError(Exception):
    """Error raised when an engine fails while rendering.

    Attributes:
        identity: Component or template being rendered.
        template_path: Template file, when the source came from one.
        original_error: The exception the engine raised.
    """

    def __init__(self, identity: str, template_path: Path | None, original_error: BaseException):
        self.identity = identity
        self.template_path = template_path
        self.original_error = original_error
        location = f" ({template_path})" if template_path else ""
        super().__init__(
            f"{identity}{location}: {type(original_error).__name__}: {original_error}"
        )


def normalize_extension(extension: str) -> str:
    return extension.strip().lower().lstrip(".")


def _generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text."""
    slug = re.sub(r"<[^>]+>", "", text).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-")


class _HighlightRenderer(mistune.HTMLRenderer):
    """Markdown renderer adding heading anchors and Pygments highlighting."""

    def __init__(self):
        super().__init__(escape=False)
        self._heading_id_counts: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        base_id = _generate_heading_id(text)
        if base_id in self._heading_id_counts:
            self._heading_id_counts[base_id] += 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        else:
            self._heading_id_counts[base_id] = 0
            heading_id = base_id
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def block_code(self, code: str, info: str | None = None) -> str:
        if info:
            from pygments import highlight
            from pygments.formatters import HtmlFormatter
            from pygments.lexers import get_lexer_by_name
            from pygments.util import ClassNotFound

            try:
                lexer = get_lexer_by_name(info.split()[0], stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                formatter = HtmlFormatter(nowrap=False, cssclass="highlight")
                return highlight(code, lexer, formatter)
        escaped = code.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
        lang_class = f' class="language-{info}"' if info else ""
        return f"<pre><code{lang_class}>{escaped}</code></pre>\n"


class MarkdownTemplateEngine:
    """Renders Markdown to HTML.

    Conversions are memoized in the ``markdown`` cache by source text, so an
    unchanged document is converted once per build (or once overall when the
    disk cache is enabled).
    """

    extensions = ("md", "markdown")

    def __init__(self, cache: Cache | None = None):
        self.cache = cache or Cache("markdown")

    def render(self, template: str, context: Mapping[str, Any] | None = None) -> str:
        # Markup's string methods escape their arguments; mistune needs plain text
        source = str(template)

        def convert() -> str:
            markdown = mistune.create_markdown(
                renderer=_HighlightRenderer(),
                plugins=["strikethrough", "footnotes", "table", "url"],
            )
            return str(markdown(source))

        return Markup(self.cache.getset(Cache.digest("markdown", source), convert))


class JinjaTemplateEngine:
    """Renders Jinja2 templates from source text.

    Compiled templates are kept per engine instance, keyed by source, so a
    component type compiles its template once.
    """

    extensions = ("jinja", "j2", "html")

    def __init__(self, **env_options: Any):
        options = {
            "autoescape": select_autoescape(
                ["html", "xml", "jinja"], default_for_string=True, default=True
            ),
            "enable_async": False,
        }
        options.update(env_options)
        self.env = Environment(**options)
        self._compiled: dict[str, Template] = {}

    def compile(self, template: str) -> Template:
        template = str(template)
        compiled = self._compiled.get(template)
        if compiled is None:
            compiled = self.env.from_string(template)
            self._compiled[template] = compiled
        return compiled

    def render(self, template: str, context: Mapping[str, Any]) -> str:
        return Markup(self.compile(template).render(dict(context)))


class PlainTemplateEngine:
    """Passes text through unchanged."""

    extensions = ("txt",)

    def render(self, template: str, context: Mapping[str, Any] | None = None) -> str:
        return template


@dataclass(frozen=True)
class Found:
    factory: Callable[[], TemplateEngine]


@dataclass(frozen=True)
class NotFound:
    reason: str


EngineLookup = Union[Found, NotFound]


class EngineRegistry:
    """Registry of template engine factories keyed by file extension.

    Registration order is significant: :attr:`extensions` lists extensions
    in the order they were registered, which is the order template discovery
    probes them.
    """

    def __init__(self, defaults: bool = True):
        self._factories: dict[str, Callable[[], TemplateEngine]] = {}
        self._shared: dict[str, TemplateEngine] = {}
        if defaults:
            for factory in (JinjaTemplateEngine, MarkdownTemplateEngine, PlainTemplateEngine):
                for extension in factory.extensions:
                    self.register(extension, factory)

    def register(self, extension: str, factory: Callable[[], TemplateEngine]) -> None:
        """Register an engine factory for an extension.

        Args:
            extension: File extension with or without the leading dot.
            factory: Zero-argument callable returning a TemplateEngine.
        """
        key = normalize_extension(extension)
        self._factories[key] = factory
        self._shared.pop(key, None)

    @property
    def extensions(self) -> tuple[str, ...]:
        return tuple(self._factories)

    def lookup(self, extension: str) -> EngineLookup:
        key = normalize_extension(extension)
        factory = self._factories.get(key)
        if factory is None:
            return NotFound(f"No rendering engine could be found for .{key} templates")
        return Found(factory)

    def create(self, extension: str, identity: str | None = None) -> TemplateEngine:
        """Build a fresh engine for an extension.

        Raises:
            UnsupportedTemplateError: If no engine is registered.
        """
        result = self.lookup(extension)
        if isinstance(result, NotFound):
            raise UnsupportedTemplateError(normalize_extension(extension), identity, result.reason)
        return result.factory()

    def engine_for(self, extension: str, identity: str | None = None) -> TemplateEngine:
        """Return this registry's shared engine for an extension.

        The first lookup builds the engine; later lookups return the same object.

        Raises:
            UnsupportedTemplateError: If no engine is registered.
        """
        key = normalize_extension(extension)
        engine = self._shared.get(key)
        if engine is None:
            engine = self.create(key, identity)
            self._shared[key] = engine
        return engine


# Default engine registry instance
default_engine_registry = EngineRegistry()


def render(
    engine: TemplateEngine,
    source_text: str,
    context: Mapping[str, Any],
    identity: str = "<template>",
    template_path: Path | None = None,
) -> str:
    """Render source text with an engine.

    Errors raised by the engine are logged and re-raised as
    TemplateRenderError chained to the original. A TemplateRenderError from
    a nested render passes through unchanged so its identity is kept.

    Args:
        engine: Engine to invoke.
        source_text: Template source.
        context: Rendering context.
        identity: Component or template name, used in errors.
        template_path: Template file the source came from, if any.

    Returns:
        Rendered string.

    Raises:
        TemplateRenderError: If the engine raises.
    """
    try:
        return engine.render(source_text, context)
    except TemplateRenderError:
        raise
    except Exception as exc:
        logger.error(
            "Template error: %s failed while rendering %s: %s",
            identity,
            template_path or "<string>",
            exc,
        )
        raise TemplateRenderError(identity, template_path, exc) from exc


def template_candidates(base: Path, extensions: Iterable[str]) -> list[Path]:
    candidates: list[Path] = []
    for extension in extensions:
        ext = normalize_extension(extension)
        candidates.append(base.with_name(f"{base.name}.{ext}"))
        candidates.append(base.with_name(f"{base.name}.html.{ext}"))
    return candidates


def find_template_path(
    base: Path, extensions: Iterable[str], identity: str | None = None
) -> Path:
    """Find the first existing template for a base name.

    For each extension in order, ``<base>.<ext>`` is probed and then
    ``<base>.html.<ext>``.

    Args:
        base: Template path without extension.
        extensions: Supported extensions, in priority order.
        identity: Name used in the error message; defaults to the base name.

    Returns:
        The first path that exists.

    Raises:
        TemplateNotFoundError: If none of the candidates exist.
    """
    candidates = template_candidates(base, extensions)
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    raise TemplateNotFoundError(identity or base.name, base.parent, candidates)


def extension_of(path: Path) -> str:
    return normalize_extension(path.suffix)
