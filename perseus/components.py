"""Components for Perseus.

A component is a reusable, templated rendering unit invoked from page
templates (or from other components). Each component type names its template
explicitly when it is declared::

    class Card(Component, template=Path(__file__).with_name("card")):
        def __init__(self, title):
            self.title = title

and the template is found by probing ``card.jinja``, ``card.html.jinja``,
``card.j2``... in order. Component types declared without ``template`` are
looked up by their snake-cased class name in the site's component load paths.

Template paths and template sources are cached per component type and per
set of component load paths, so sites with different component directories
never see each other's templates. Engines are cached per component type.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any, ClassVar

from markupsafe import Markup

from . import renderers
from .current import current_site
from .protocols import TemplateEngine, ViewContext
from .renderers import (
    EngineLookup,
    EngineRegistry,
    NotFound,
    TemplateNotFoundError,
    UnsupportedTemplateError,
    default_engine_registry,
    normalize_extension,
)
from .views import Helpers, render_item

if TYPE_CHECKING:
    from .config import Locale
    from .site import Site

logger = logging.getLogger(__name__)

_template_paths: dict[tuple[type, tuple[Path, ...]], Path] = {}
_template_contents: dict[tuple[type, tuple[Path, ...]], str] = {}
_engines: dict[tuple[type, str], TemplateEngine] = {}


def reset_component_caches() -> None:
    """Forget every cached template path, template source and engine."""
    _template_paths.clear()
    _template_contents.clear()
    _engines.clear()


def _snake_case(name: str) -> str:
    name = re.sub(r"(.)([A-Z][a-z]+)", r"\1_\2", name)
    return re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name).lower()


class _LazyContent:
    """Defers a component's content block until a template actually uses it."""

    def __init__(self, component: Component):
        self._component = component

    def _value(self) -> str:
        return self._component.content() or ""

    def __html__(self) -> str:
        return str(self._value())

    def __str__(self) -> str:
        return str(self._value())

    def __bool__(self) -> bool:
        return bool(self._value())


class Component:
    """Base class for templated components.

    Subclasses may override :meth:`should_render`, :meth:`before_render` and
    :meth:`call` (return a string to skip the template file entirely).

    Attributes:
        template_base: Template location supplied at declaration, without extension.
        supported_template_extensions: Extensions probed for the template, in order.
        engine_registry: Registry the component's engines come from.
    """

    template_base: ClassVar[Path | None] = None
    supported_template_extensions: ClassVar[tuple[str, ...]] = ("jinja", "j2", "md")
    engine_registry: ClassVar[EngineRegistry] = default_engine_registry

    _view_context: ViewContext | None = None
    _content_block: Callable[[], str] | None = None
    _content: str | None = None
    _content_evaluated: bool = False
    _helpers: Helpers | None = None

    def __init_subclass__(cls, template: str | os.PathLike[str] | None = None, **kwargs: Any):
        super().__init_subclass__(**kwargs)
        cls.template_base = Path(template) if template is not None else None

    # -- class-level template resolution ---------------------------------

    @classmethod
    def _search_bases(cls) -> list[Path]:
        base = cls.template_base
        if base is not None and base.is_absolute():
            return [base]
        site = current_site()
        load_paths = list(site.components_load_paths) if site is not None else []
        relative = base if base is not None else Path(_snake_case(cls.__name__))
        return [directory / relative for directory in load_paths]

    @classmethod
    def _cache_key(cls) -> tuple[type, tuple[Path, ...]]:
        site = current_site()
        return cls, tuple(site.components_load_paths) if site is not None else ()

    @classmethod
    def component_template_path(cls) -> Path:
        """Return the first matching template file for this component type.

        Raises:
            TemplateNotFoundError: If no candidate exists.
        """
        key = cls._cache_key()
        cached = _template_paths.get(key)
        if cached is not None:
            return cached
        if cls.template_base is not None and cls.template_base.is_file():
            _template_paths[key] = cls.template_base
            return cls.template_base

        bases = cls._search_bases()
        candidates: list[Path] = []
        for base in bases:
            try:
                path = renderers.find_template_path(
                    base, cls.supported_template_extensions, identity=cls.__qualname__
                )
            except TemplateNotFoundError as exc:
                candidates.extend(exc.candidates)
                continue
            _template_paths[key] = path
            return path
        search_dir = bases[0].parent if bases else Path.cwd()
        raise TemplateNotFoundError(cls.__qualname__, search_dir, candidates)

    @classmethod
    def component_template_content(cls) -> str:
        key = cls._cache_key()
        content = _template_contents.get(key)
        if content is None:
            path = cls.component_template_path()
            site = current_site()
            encoding = site.config.file_read_opts["encoding"] if site else "utf-8"
            content = path.read_text(encoding=encoding)
            _template_contents[key] = content
        return content

    @classmethod
    def path_for_errors(cls) -> str:
        try:
            return str(cls.component_template_path())
        except TemplateNotFoundError:
            return str(cls.template_base or _snake_case(cls.__name__))

    @classmethod
    def _lookup_engine(cls, extension: str) -> EngineLookup:
        if extension not in cls.supported_template_extensions:
            return NotFound(
                f"No component rendering engine could be found for .{extension} templates"
            )
        return cls.engine_registry.lookup(extension)

    @classmethod
    def engine_for(cls, extension: str) -> TemplateEngine:
        """Return this component type's engine for an extension.

        The engine is built on the first call and the same object is returned
        on every later call for the same type and extension.

        Raises:
            UnsupportedTemplateError: If the extension has no engine.
        """
        key = (cls, normalize_extension(extension))
        engine = _engines.get(key)
        if engine is None:
            result = cls._lookup_engine(key[1])
            if isinstance(result, NotFound):
                raise UnsupportedTemplateError(key[1], cls.__qualname__, result.reason)
            engine = result.factory()
            _engines[key] = engine
        return engine

    # -- rendering --------------------------------------------------------

    @property
    def view_context(self) -> ViewContext | None:
        return self._view_context

    @property
    def site(self) -> Site | None:
        if self._view_context is not None:
            return self._view_context.site
        return current_site()

    @property
    def locale(self) -> Locale | None:
        locale = getattr(self._view_context, "locale", None)
        if locale is not None:
            return locale
        site = self.site
        return site.config.default_locale if site else None

    def render_in(
        self, view_context: ViewContext, content_block: Callable[[], str] | None = None
    ) -> str:
        """Render the component within a view context.

        Args:
            view_context: The enclosing view or component.
            content_block: Deferred content, exposed through :meth:`content`.

        Returns:
            Rendered output, or ``""`` when :meth:`should_render` is false.
        """
        self._view_context = view_context
        self._content_block = content_block
        self._content = None
        self._content_evaluated = False
        self._helpers = None
        try:
            if self.should_render():
                self.before_render()
                return self.template()
            return ""
        except Exception:
            logger.error(
                "Component error: %s encountered an error while rendering `%s'",
                type(self).__qualname__,
                self.path_for_errors(),
            )
            raise

    def should_render(self) -> bool:
        return True

    def before_render(self) -> None:
        pass

    def call(self) -> str | None:
        return None

    def template(self) -> str:
        output = self.call()
        if output is not None:
            return Markup(output)
        cls = type(self)
        path = cls.component_template_path()
        engine = cls.engine_for(renderers.extension_of(path))
        return Markup(
            renderers.render(
                engine,
                cls.component_template_content(),
                self.template_context(),
                identity=cls.__qualname__,
                template_path=path,
            )
        )

    def template_context(self) -> dict[str, Any]:
        """Variables available to the component's template."""
        context = {
            key: value for key, value in vars(self).items() if not key.startswith("_")
        }
        context.update(
            component=self,
            content=_LazyContent(self),
            site=self.site,
            locale=self.locale.tag if self.locale else None,
            render=self.render,
            partial=self.partial,
            helpers=self.helpers,
            relative_url=self.relative_url,
            absolute_url=self.absolute_url,
            markdownify=self.markdownify,
            t=self.t,
        )
        return context

    def content(self) -> str | None:
        """Return the captured content block, evaluating it on first use."""
        if not self._content_evaluated:
            if self._content_block is not None:
                self._content = self.capture(self._content_block)
            self._content_evaluated = True
        return self._content

    def render(
        self,
        item: Any,
        options: Mapping[str, Any] | None = None,
        content_block: Callable[[], str] | None = None,
        caller: Callable[[], str] | None = None,
    ) -> Markup:
        """Render a nested component or a named partial; output is marked safe."""
        return render_item(self, item, options, content_block or caller)

    # -- passthroughs to the view context and helpers ---------------------

    def _require_view(self) -> ViewContext:
        if self._view_context is None:
            raise RuntimeError(f"{type(self).__qualname__} is not being rendered in a view")
        return self._view_context

    def capture(self, block: Callable[..., Any], *args: Any) -> str:
        return self._require_view().capture(block, *args)

    def partial(
        self,
        name: str,
        options: Mapping[str, Any] | None = None,
        content_block: Callable[[], str] | None = None,
    ) -> str:
        return self._require_view().partial(name, options, content_block)

    def write(self, text: Any) -> str:
        return self._require_view().write(text)

    @property
    def helpers(self) -> Helpers:
        if self._helpers is None:
            self._helpers = Helpers(self, self.site)
        return self._helpers

    def relative_url(self, target: Any) -> str:
        return self.helpers.relative_url(target)

    def absolute_url(self, target: Any) -> str:
        return self.helpers.absolute_url(target)

    def markdownify(self, text: str) -> Markup:
        return self.helpers.markdownify(text)

    def t(self, key: str, default: str | None = None) -> str:
        return self.helpers.t(key, default)
