"""Render views and template helpers for Perseus.

A view is the scope a template renders in. It owns a stack of output buffers
so nested renders capture their output in isolation, renders partials, and
exposes the read-only helper set.

Key classes:
- OutputBuffer: Accumulates written fragments.
- Helpers: The HelperProvider exposed to templates and components.
- ResourceView: View context for rendering one resource.

Key functions:
- render_item: Render a component or a named partial from a host view.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from markupsafe import Markup

from . import renderers
from .current import current_site
from .protocols import Renderable, ViewContext

if TYPE_CHECKING:
    from .config import Locale
    from .resources import Resource
    from .site import Site

logger = logging.getLogger(__name__)


class OutputBuffer:
    """Accumulates fragments written during a render."""

    def __init__(self) -> None:
        self._parts: list[str] = []

    def write(self, text: Any) -> str:
        self._parts.append(str(text))
        return ""

    def __str__(self) -> str:
        return "".join(self._parts)

    def __len__(self) -> int:
        return sum(len(part) for part in self._parts)


class Helpers:
    """Read-only helper methods for templates and components.

    Attributes:
        view: The view the helpers were built for, if any.
        site: Site the helpers read settings and data from, if any.
    """

    def __init__(self, view: Any, site: Site | None):
        self.view = view
        self.site = site

    def _locale_tag(self) -> str | None:
        locale = getattr(self.view, "locale", None)
        if locale is not None:
            return locale.tag
        if self.site is not None:
            return self.site.config.default_locale.tag
        return None

    def relative_url(self, target: Any) -> str:
        """Return the site-relative URL of a resource or path.

        Resources already carry their final URL. Plain paths are prefixed with
        the configured base path; absolute URLs pass through untouched.
        """
        url = getattr(target, "relative_url", None)
        if isinstance(url, str) and url:
            return url
        path = str(target)
        if path.startswith(("http://", "https://", "//", "#", "mailto:")):
            return path
        if not path.startswith("/"):
            path = f"/{path}"
        base = self.site.config.base_path(strip_slash_only=True) if self.site else ""
        return f"{base}{path}"

    def absolute_url(self, target: Any) -> str:
        relative = self.relative_url(target)
        if relative.startswith(("http://", "https://", "//")):
            return relative
        root = str(self.site.config.get("url") or "").rstrip("/") if self.site else ""
        return f"{root}{relative}"

    def markdownify(self, text: str) -> Markup:
        registry = self.site.engines if self.site else renderers.default_engine_registry
        engine = registry.engine_for("md", identity="markdownify")
        return Markup(renderers.render(engine, str(text), {}, identity="markdownify"))

    def t(self, key: str, default: str | None = None) -> str:
        """Translate a dotted key using ``data["locales"][<tag>]``.

        The table comes from ``_data/locales/<tag>.yaml`` or from a
        ``_data/locales.yaml`` keyed by tag.

        Falls back to the default locale, then ``default``, then the key.
        """
        tables = (self.site.data.get("locales") or {}) if self.site else {}
        tags = [self._locale_tag()]
        if self.site is not None:
            tags.append(self.site.config.default_locale.tag)
        for tag in tags:
            node: Any = tables.get(tag) if tag else None
            for part in key.split("."):
                if not isinstance(node, Mapping):
                    node = None
                    break
                node = node.get(part)
            if isinstance(node, (str, int, float)):
                return str(node)
        return default if default is not None else key

    def in_locale(self, resource: Resource, tag: str) -> Resource | None:
        """Return the variant of a resource rendered for another locale."""
        if resource.collection is None:
            return None
        return resource.collection.get(resource.relative_path.as_posix(), tag)


def render_item(
    host: ViewContext,
    item: Any,
    options: Mapping[str, Any] | None = None,
    content_block: Callable[[], str] | None = None,
) -> Markup:
    """Render a component or a named partial on behalf of ``host``.

    Components render inside a scoped capture: whatever they write goes to a
    buffer of their own, which is dropped if they raise, so a failed nested
    render never leaks output into the host's buffer.

    Args:
        host: View or component the item is rendered within.
        item: A Renderable, or the name of a partial.
        options: Locals for a partial.
        content_block: Deferred content passed to the item.

    Returns:
        The rendered output, marked safe.
    """
    if isinstance(item, Renderable):
        result: list[str] = []

        def run() -> None:
            result.append(item.render_in(host, content_block))

        host.capture(run)
        return Markup(result[0] if result and result[0] is not None else "")
    return Markup(host.partial(str(item), options, content_block))


class ResourceView:
    """View context for rendering one resource (or a standalone template).

    Attributes:
        resource: Resource being rendered, if any.
    """

    def __init__(self, site: Site | None = None, resource: Resource | None = None):
        self._site = site
        self.resource = resource
        self._buffers: list[OutputBuffer] = [OutputBuffer()]
        self._helpers: Helpers | None = None

    @property
    def site(self) -> Site | None:
        return self._site or current_site()

    @property
    def locale(self) -> Locale | None:
        if self.resource is not None:
            return self.resource.locale
        site = self.site
        return site.config.default_locale if site else None

    @property
    def helpers(self) -> Helpers:
        if self._helpers is None:
            self._helpers = Helpers(self, self.site)
        return self._helpers

    @property
    def output_buffer(self) -> OutputBuffer:
        return self._buffers[-1]

    def write(self, text: Any) -> str:
        return self.output_buffer.write(text)

    def capture(self, block: Callable[..., Any], *args: Any) -> Markup:
        """Run block with a fresh output buffer.

        The buffer is popped whether or not the block raises. If the block
        wrote nothing, its string return value is used instead.

        Returns:
            Captured output, marked safe.
        """
        buffer = OutputBuffer()
        self._buffers.append(buffer)
        try:
            result = block(*args)
        finally:
            self._buffers.pop()
        captured = str(buffer)
        if not captured and isinstance(result, str):
            captured = result
        return Markup(captured)

    def render(
        self,
        item: Any,
        options: Mapping[str, Any] | None = None,
        content_block: Callable[[], str] | None = None,
        caller: Callable[[], str] | None = None,
    ) -> Markup:
        """Render a component or partial; ``caller`` supports Jinja call blocks."""
        return render_item(self, item, options, content_block or caller)

    def partial(
        self,
        name: str,
        options: Mapping[str, Any] | None = None,
        content_block: Callable[[], str] | None = None,
    ) -> Markup:
        """Render ``_partials/<name>`` with options available as locals.

        Raises:
            TemplateNotFoundError: If no partial file matches.
        """
        site = self.site
        if site is None:
            raise RuntimeError(f"Cannot render partial '{name}' without a site")
        path = renderers.find_template_path(
            site.partials_dir / name, site.engines.extensions, identity=f"partial '{name}'"
        )
        engine = site.engines.engine_for(renderers.extension_of(path), identity=name)
        context = self.context()
        context.update(options or {})
        if content_block is not None:
            context["content"] = self.capture(content_block)
        source = site.read_template(path)
        return Markup(
            renderers.render(engine, source, context, identity=f"partial '{name}'", template_path=path)
        )

    def context(self, **extra: Any) -> dict[str, Any]:
        """Build the variables available to page, layout and partial templates."""
        site = self.site
        helpers = self.helpers
        resource = self.resource
        context: dict[str, Any] = dict(site.template_globals) if site else {}
        context.update({
            "site": site,
            "data": site.data if site else {},
            "collections": site.collections if site else {},
            "resource": resource,
            "page": resource.data if resource else {},
            "locale": self.locale.tag if self.locale else None,
            "view": self,
            "helpers": helpers,
            "render": self.render,
            "partial": self.partial,
            "relative_url": helpers.relative_url,
            "absolute_url": helpers.absolute_url,
            "markdownify": helpers.markdownify,
            "t": helpers.t,
            "in_locale": helpers.in_locale,
        })
        context.update(extra)
        return context
