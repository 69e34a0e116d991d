"""The site: configuration, collections, locales and rendering in one place.

A build is ``Site.process()``: reset, read documents into locale-aware
resources, render every resource, write the results. The whole pass runs
inside :func:`perseus.current.build_context` so components rendered without
an explicit view can still reach the site.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from markupsafe import Markup

from . import renderers
from .cache import Cache
from .collections import CollectionRegistry, ResourceIdentityError
from .components import reset_component_caches
from .config import Configuration
from .content import Document, FileContentLoader, extract_frontmatter, load_data
from .current import build_context
from .locales import LocaleResolver
from .renderers import EngineRegistry, TemplateNotFoundError
from .resources import Resource
from .views import ResourceView

logger = logging.getLogger(__name__)

NO_LAYOUT = ("none", "false", "")


class Site:
    """A configured site and the resources produced from its sources.

    Attributes:
        engines: Template engines available to documents, layouts and partials.
        data: Data loaded from ``_data`` files.
        collections: Registry of resource collections.
        locale_resolver: Locale policy for the current configuration.
        template_globals: Extra names (component types, filters...) visible
            to every page, layout and partial.
    """

    def __init__(
        self,
        config: Configuration | Mapping[str, Any],
        engines: EngineRegistry | None = None,
        template_globals: Mapping[str, Any] | None = None,
    ):
        self.engines = engines or EngineRegistry()
        self.template_globals: dict[str, Any] = dict(template_globals or {})
        self.data: dict[str, Any] = {}
        self._template_sources: dict[Path, str] = {}
        self.config = config

    @property
    def config(self) -> Configuration:
        return self._config

    @config.setter
    def config(self, config: Configuration | Mapping[str, Any]) -> None:
        """Set the site's configuration and apply its side effects.

        The cache directory is configured and the component and template
        search paths are re-derived from the new snapshot.
        """
        if not isinstance(config, Configuration):
            config = Configuration.from_mapping(config)
        self._config = config
        self.locale_resolver = LocaleResolver(config)
        self.collections = CollectionRegistry(config.collections, self)
        self._configure_cache()
        self._configure_template_paths()

    def _configure_cache(self) -> None:
        Cache.configure(self._config.cache_dir, self._config.disable_disk_cache)

    def _configure_template_paths(self) -> None:
        self.components_load_paths: tuple[Path, ...] = self._config.components_load_paths
        self.layouts_dir = self._config.in_source_dir("_layouts")
        self.partials_dir = self._config.in_source_dir("_partials")
        self._template_sources.clear()
        logger.debug(
            "Component load paths: %s",
            ", ".join(str(p) for p in self.components_load_paths) or "(none)",
        )

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"Site({self._config.source_dir})"

    # -- build steps -------------------------------------------------------

    def reset(self) -> None:
        """Clear resources, data and template sources from a previous pass."""
        self.collections.clear()
        self.data = {}
        self._template_sources.clear()

    def read(self, documents: Iterable[Document] | None = None) -> list[Resource]:
        """Turn documents into registered resources.

        Args:
            documents: Documents to read; discovered from the source
                directory when omitted.

        Returns:
            Every resource registered, in discovery order.

        Raises:
            ResourceIdentityError: If a document's collection is unknown.
            PermalinkConflictError: If two resources claim the same URL.
        """
        self.data = load_data(self._config)
        if documents is None:
            documents = FileContentLoader(self._config, self.engines.extensions).load()
        resources: list[Resource] = []
        for document in documents:
            resources.extend(self.add_document(document))
        self.collections.check_unique_urls()
        logger.info("Read %d resources", len(resources))
        return resources

    def add_document(self, document: Document) -> list[Resource]:
        """Register one resource per locale the document renders for."""
        if document.front_matter.get("published") is False:
            logger.debug("Skipping unpublished %s", document.relative_path)
            return []
        collection = self.collections.get(document.collection)
        if collection is None:
            raise ResourceIdentityError(
                None,
                f"{document.relative_path}: collection '{document.collection}' is not configured",
            )
        resources = []
        for locale in self.locale_resolver.locales_for(document):
            resource = Resource(
                document,
                locale,
                data=self.locale_resolver.localized_data(document, locale),
                permalink=self.locale_resolver.permalink_for(document, locale, "/"),
                relative_url=self.locale_resolver.permalink_for(document, locale),
            )
            collection.register(resource)
            resources.append(resource)
        return resources

    def render(self) -> None:
        for resource in self.collections.resources():
            self.render_resource(resource)

    def render_resource(self, resource: Resource) -> str:
        """Render a resource's body and layouts, storing content and output.

        The body passes through the configured template engine and then
        through the engine for its file extension (e.g. Markdown), unless the
        two are the same engine.

        Returns:
            The final output.
        """
        view = ResourceView(self, resource)
        context = view.context()
        identity = f"{resource.relative_path} ({resource.locale.tag})"
        source_path = resource.document.source_path

        content: str = resource.document.body
        for stage in self._stages_for(resource):
            engine = self.engines.engine_for(stage, identity=identity)
            content = renderers.render(
                engine, content, context, identity=identity, template_path=source_path
            )
        resource.content = Markup(content)
        resource.output = self._apply_layouts(resource, view, resource.content)
        return resource.output

    def _stages_for(self, resource: Resource) -> list[str]:
        template_engine = str(
            resource.data.get("template_engine", self._config.template_engine) or "none"
        ).lower()
        extension = resource.document.extension
        stages = []
        if template_engine != "none":
            stages.append(template_engine)
        if template_engine == "none" or self.engines.lookup(extension) != self.engines.lookup(
            template_engine
        ):
            stages.append(extension)
        return stages

    def _layout_name(self, resource: Resource) -> str | None:
        if "layout" in resource.data:
            layout = resource.data["layout"]
            if layout is None or layout is False or str(layout).lower() in NO_LAYOUT:
                return None
            return str(layout)
        try:
            renderers.find_template_path(self.layouts_dir / "default", self.engines.extensions)
        except TemplateNotFoundError:
            return None
        return "default"

    def _apply_layouts(self, resource: Resource, view: ResourceView, content: str) -> str:
        output = content
        name = self._layout_name(resource)
        seen: set[str] = set()
        while name:
            if name in seen:
                logger.warning("%s: layout '%s' includes itself; stopping", resource.relative_path, name)
                break
            seen.add(name)
            identity = f"layout '{name}'"
            path = renderers.find_template_path(
                self.layouts_dir / name, self.engines.extensions, identity=identity
            )
            layout_data, layout_body = extract_frontmatter(self.read_template(path))
            engine = self.engines.engine_for(renderers.extension_of(path), identity=identity)
            context = view.context(content=Markup(output), layout=layout_data)
            output = renderers.render(engine, layout_body, context, identity=identity, template_path=path)
            parent = layout_data.get("layout")
            name = str(parent) if parent and str(parent).lower() not in NO_LAYOUT else None
        return output

    def read_template(self, path: Path) -> str:
        source = self._template_sources.get(path)
        if source is None:
            source = path.read_text(**self._config.file_read_opts)
            self._template_sources[path] = source
        return source

    def output_path(self, resource: Resource) -> Path:
        """Destination file for a resource; directory URLs get ``index.html``."""
        target = resource.permalink
        if target.endswith("/"):
            target = f"{target}index.html"
        return self._config.in_dest_dir(target)

    def write(self) -> list[Path]:
        written: list[Path] = []
        for resource in self.collections.resources():
            if resource.output is None:
                continue
            path = self.output_path(resource)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(resource.output, encoding="utf-8")
            resource.mark_written()
            written.append(path)
        logger.info("Wrote %d files to %s", len(written), self._config.destination_dir)
        return written

    def process(self, documents: Iterable[Document] | None = None) -> Site:
        """Run a full build pass: reset, read, render and write."""
        with build_context(self):
            reset_component_caches()
            self.reset()
            self.read(documents)
            self.render()
            self.write()
        return self

    # -- queries -------------------------------------------------------------

    def resources(self) -> list[Resource]:
        return list(self.collections.resources())

    def find_resource(self, relative_path: str, locale: str | None = None) -> Resource | None:
        tag = locale or self._config.default_locale.tag
        for collection in self.collections.values():
            found = collection.get(relative_path, tag)
            if found is not None:
                return found
        return None
